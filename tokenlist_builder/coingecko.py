import asyncio
import os
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from pycoingecko import CoinGeckoAPI
from requests.exceptions import RequestException

from tokenlist_builder.errors import InvalidAddress
from tokenlist_builder.metrics import metrics
from tokenlist_builder.models import MetadataOverride, normalize_address
from tokenlist_builder.networks import NetworkConfig

ExternalMetadata = Tuple[Optional[str], MetadataOverride]


class CoingeckoMetadataResolver:
    """
    Looks up token name, symbol and logo on CoinGecko by contract address.

    Lookups are serialized and the resolver pauses for `pause` seconds after
    every `batch_size` requests. The free API allows roughly 10 calls per
    second but aggressively bans bursts, so this must not be parallelized.
    """

    def __init__(
        self,
        network: NetworkConfig,
        api: Optional[CoinGeckoAPI] = None,
        batch_size: int = 10,
        pause: float = 2.0,
    ) -> None:
        self.network = network
        self.api = api if api is not None else CoinGeckoAPI()
        self.batch_size = batch_size
        self.pause = pause
        self.lookups = 0
        self._lock = asyncio.Lock()

    @staticmethod
    def create(
        network: NetworkConfig, config: Dict[str, Any], timeout: float = 60
    ) -> "CoingeckoMetadataResolver":
        api = CoinGeckoAPI(api_key=os.environ.get("COINGECKO_API_KEY", ""))
        api.request_timeout = timeout
        return CoingeckoMetadataResolver(
            network,
            api,
            batch_size=int(config.get("batch_size", 10)),
            pause=float(config.get("pause", 2.0)),
        )

    async def get_metadata(self, address: str) -> ExternalMetadata:
        """
        Returns the token's mainnet address (as indexed by CoinGecko) and its
        metadata, or `(None, MetadataOverride())` when there is none.
        """
        platform = self.network.coingecko_platform
        if platform is None:
            return None, MetadataOverride()

        async with self._lock:
            data = await self._fetch(platform, address)

        if data is None:
            return None, MetadataOverride()

        try:
            metadata = MetadataOverride(
                address=address,
                name=data["name"],
                symbol=data["symbol"],
                logo_uri=data["image"]["large"],
            )
        except (KeyError, TypeError) as exc:
            logger.warning(f"Malformed CoinGecko response for token {address}: {exc}")
            return None, MetadataOverride()

        return self.mainnet_address(data), metadata

    async def _fetch(self, platform: str, address: str) -> Optional[Dict[str, Any]]:
        try:
            with metrics.time_operation(
                metrics.api_request_duration, service="coingecko", endpoint="contract"
            ):
                data = await asyncio.to_thread(
                    self.api.get_coin_info_from_contract_address_by_id,
                    id=platform,
                    contract_address=address.lower(),
                )
            metrics.api_request_total.labels(
                service="coingecko", endpoint="contract", status="success"
            ).inc()
            return data
        except (ValueError, RequestException) as exc:
            metrics.api_request_total.labels(
                service="coingecko", endpoint="contract", status="error"
            ).inc()
            logger.warning(f"CoinGecko metadata not found for token {address}: {exc}")
            return None
        finally:
            self.lookups += 1
            if self.lookups % self.batch_size == 0:
                logger.debug(
                    f"Pausing {self.pause}s after {self.lookups} CoinGecko lookups"
                )
                await asyncio.sleep(self.pause)

    @staticmethod
    def mainnet_address(data: Dict[str, Any]) -> Optional[str]:
        platforms = data.get("platforms") or {}
        try:
            return normalize_address(platforms.get("ethereum"))
        except InvalidAddress:
            return None
