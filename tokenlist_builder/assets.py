import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout
from loguru import logger

from tokenlist_builder.errors import AssetFetchError, InputFileError, InvalidAddress
from tokenlist_builder.models import MetadataOverride, TokenInfo, normalize_address
from tokenlist_builder.networks import MainnetAddressMap, NetworkConfig

TRUSTWALLET_TOKENLIST_URL = "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains/{blockchain}/tokenlist.json"
LOCAL_ICON_URL = (
    "https://raw.githubusercontent.com/balancer-labs/assets/master/assets/{address}.png"
)

MetadataMap = Dict[str, MetadataOverride]


def merge_metadata(sources: Iterable[Iterable[MetadataOverride]]) -> MetadataMap:
    """
    Merge metadata sources in order, later sources overwriting the fields of
    earlier ones for the same address.
    """
    merged: MetadataMap = {}
    for source in sources:
        for entry in source:
            if entry.address is None:
                continue
            existing = merged.get(entry.address)
            merged[entry.address] = (
                existing.merged(entry) if existing is not None else entry
            )
    return merged


def load_overwrites(path: Path) -> MetadataMap:
    """
    Read a manual `<network>.metadataOverwrite.json` file (address -> partial
    token fields) keyed by checksummed address.
    """
    try:
        with open(path, "r") as file:
            raw: Dict[str, Dict[str, Any]] = json.load(file)
    except FileNotFoundError as exc:
        raise InputFileError(f"Metadata overwrite file not found: {path}") from exc
    except ValueError as exc:
        raise InputFileError(f"Malformed metadata overwrite file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise InputFileError(f"Metadata overwrite file {path} must be an object")

    overwrites: MetadataMap = {}
    for address, fields in raw.items():
        try:
            checksummed = normalize_address(address)
            entry = MetadataOverride.from_dict({**fields, "address": checksummed})
        except (InvalidAddress, TypeError) as exc:
            raise InputFileError(f"Malformed overwrite entry {address}: {exc}") from exc
        if checksummed in overwrites:
            logger.warning(f"Duplicate metadata overwrite for {checksummed}")
            entry = overwrites[checksummed].merged(entry)
        overwrites[checksummed] = entry
    return overwrites


class ExistingMetadataStore:
    """
    Metadata already known about tokens before any resolver runs: the
    trustwallet community list, our local icon directory and the list we
    published last time.
    """

    def __init__(
        self,
        network: NetworkConfig,
        assets_dir: Path,
        mainnet_map: Optional[MainnetAddressMap] = None,
        icon_url: str = LOCAL_ICON_URL,
        trustwallet_url: str = TRUSTWALLET_TOKENLIST_URL,
        timeout: float = 60,
    ) -> None:
        self.network = network
        self.assets_dir = Path(assets_dir)
        self.mainnet_map = mainnet_map if mainnet_map is not None else MainnetAddressMap()
        self.icon_url = icon_url
        self.trustwallet_url = trustwallet_url
        self.timeout = timeout
        self.trustwallet: List[MetadataOverride] = []
        self.icons: Dict[str, str] = {}
        self.metadata: MetadataMap = {}

    async def fetch(self) -> None:
        """
        Fetch the trustwallet list and scan the icon directory. Both are the
        same for every list class of the network.
        """
        self.trustwallet = self.parse_token_entries(await self.fetch_trustwallet_tokens())
        self.icons = self.load_local_icons()

    def load(self, known_tokens: Optional[List[TokenInfo]] = None) -> MetadataMap:
        """
        Layer the tokens of a previously published list over the fetched
        sources.
        """
        self.metadata = merge_metadata(
            [
                self.trustwallet,
                (
                    MetadataOverride(address=address, logo_uri=uri)
                    for address, uri in self.icons.items()
                ),
                (
                    MetadataOverride(
                        address=token.address,
                        chain_id=token.chain_id,
                        name=token.name,
                        symbol=token.symbol,
                        decimals=token.decimals,
                        logo_uri=token.logo_uri,
                    )
                    for token in known_tokens or []
                ),
            ]
        )
        logger.debug(
            f"Loaded existing metadata for {len(self.metadata)} tokens on {self.network.network}"
        )
        return self.metadata

    async def fetch_trustwallet_tokens(self) -> List[Dict[str, Any]]:
        url = self.trustwallet_url.format(blockchain=self.network.trustwallet_blockchain)
        try:
            async with ClientSession(timeout=ClientTimeout(total=self.timeout)) as session:
                async with session.get(url) as response:
                    response.raise_for_status()
                    # raw.githubusercontent.com serves JSON as text/plain
                    data = await response.json(content_type=None)
        except (ClientError, ValueError) as exc:
            raise AssetFetchError(f"Failed to fetch trustwallet list {url}: {exc}") from exc

        try:
            return list(data["tokens"])
        except (KeyError, TypeError) as exc:
            raise AssetFetchError(f"Malformed trustwallet list {url}: {exc}") from exc

    def load_local_icons(self) -> Dict[str, str]:
        icons: Dict[str, str] = {}
        if not self.assets_dir.is_dir():
            logger.warning(f"Icon directory {self.assets_dir} not found")
            return icons

        for filename in sorted(os.listdir(self.assets_dir)):
            stem, extension = os.path.splitext(filename)
            if extension != ".png":
                continue
            try:
                address = normalize_address(stem)
            except InvalidAddress:
                logger.warning(f"Skipping icon not named after an address: {filename}")
                continue
            icons[address] = self.icon_url.format(address=address.lower())
        return icons

    @staticmethod
    def parse_token_entries(entries: Iterable[Dict[str, Any]]) -> List[MetadataOverride]:
        parsed = []
        for entry in entries:
            try:
                parsed.append(MetadataOverride.from_dict(entry))
            except (InvalidAddress, AttributeError) as exc:
                logger.debug(f"Skipping asset list entry {entry!r}: {exc}")
        return parsed

    def lookup(
        self, mapping: Mapping[str, MetadataOverride], address: str
    ) -> MetadataOverride:
        """
        Find metadata for `address`, falling back to its mainnet twin.
        """
        entry = mapping.get(address)
        if entry is None:
            entry = mapping.get(self.mainnet_map.map(address))
        return entry if entry is not None else MetadataOverride()

    def icon_lookup(self, address: str) -> Optional[str]:
        icon = self.icons.get(address)
        if icon is None:
            icon = self.icons.get(self.mainnet_map.map(address))
        return icon
