import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from aiohttp import ClientError, ClientTimeout
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address
from loguru import logger
from more_itertools import chunked
from throttler import Throttler
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from tokenlist_builder.errors import ChainProviderError
from tokenlist_builder.metrics import metrics
from tokenlist_builder.models import DEFAULT_DECIMALS, UNKNOWN, OnchainMetadata
from tokenlist_builder.networks import NetworkConfig

T = TypeVar("T")

NAME_SELECTOR = function_signature_to_4byte_selector("name()")
SYMBOL_SELECTOR = function_signature_to_4byte_selector("symbol()")
DECIMALS_SELECTOR = function_signature_to_4byte_selector("decimals()")
TRY_AGGREGATE_SELECTOR = function_signature_to_4byte_selector(
    "tryAggregate(bool,(address,bytes)[])"
)

DECODE_ERRORS = (DecodingError, ValueError, OverflowError)
PROVIDER_ERRORS = (Web3Exception, ClientError, asyncio.TimeoutError) + DECODE_ERRORS


def decode_abi_string(data: bytes) -> str:
    (value,) = decode(["string"], data)
    return value


def decode_bytes32_string(data: bytes) -> str:
    # Some early tokens (MKR, SAI) return name and symbol as bytes32
    if len(data) != 32:
        raise ValueError("invalid bytes32 string - wrong length")
    if data[31] != 0:
        raise ValueError("invalid bytes32 string - no null terminator")
    return data[: data.index(0)].decode("utf-8")


def decode_abi_uint8(data: bytes) -> int:
    (value,) = decode(["uint256"], data)
    if value > 255:
        raise ValueError(f"decimals out of range: {value}")
    return value


STRING_DECODERS: List[Callable[[bytes], str]] = [
    decode_abi_string,
    decode_bytes32_string,
]
DECIMALS_DECODERS: List[Callable[[bytes], int]] = [decode_abi_uint8]


def first_decoded(
    decoders: Sequence[Callable[[bytes], T]], data: Optional[bytes]
) -> Optional[T]:
    """
    Return the result of the first decoder that accepts `data`, or None when
    none does (or the call itself failed and there is no data).
    """
    if not data:
        return None
    for decoder in decoders:
        try:
            return decoder(data)
        except DECODE_ERRORS:
            continue
    return None


def decode_erc20_metadata(
    name_data: Optional[bytes],
    symbol_data: Optional[bytes],
    decimals_data: Optional[bytes],
) -> OnchainMetadata:
    name = first_decoded(STRING_DECODERS, name_data)
    symbol = first_decoded(STRING_DECODERS, symbol_data)
    decimals = first_decoded(DECIMALS_DECODERS, decimals_data)
    return OnchainMetadata(
        name=name if name is not None else UNKNOWN,
        symbol=symbol if symbol is not None else UNKNOWN,
        decimals=decimals if decimals is not None else DEFAULT_DECIMALS,
        decimals_known=decimals is not None,
    )


def encode_try_aggregate(calls: Sequence[Tuple[str, bytes]]) -> bytes:
    return TRY_AGGREGATE_SELECTOR + encode(
        ["bool", "(address,bytes)[]"], [False, list(calls)]
    )


def decode_try_aggregate(data: bytes) -> List[Tuple[bool, bytes]]:
    (results,) = decode(["(bool,bytes)[]"], data)
    return [(success, payload) for success, payload in results]


class ChainMetadataResolver:
    """
    Reads name, symbol and decimals of ERC20 tokens through the network's
    multicall contract.

    All three calls of every address in a batch go out as a single
    `tryAggregate(false, ...)` call, so a reverting or non-standard token
    only degrades its own metadata. Failing to reach the chain raises
    :class:`ChainProviderError`.
    """

    def __init__(
        self,
        network: NetworkConfig,
        w3: AsyncWeb3,
        batch_size: int = 50,
        throttler: Optional[Throttler] = None,
    ) -> None:
        self.network = network
        self.w3 = w3
        self.batch_size = batch_size
        self.throttler = throttler

    @staticmethod
    def create(
        network: NetworkConfig, config: Dict, timeout: float = 60
    ) -> "ChainMetadataResolver":
        w3 = AsyncWeb3(
            AsyncHTTPProvider(
                network.endpoint(),
                request_kwargs={"timeout": ClientTimeout(total=timeout)},
            )
        )
        throttler = None
        if "request_rate_limit" in config:
            throttler = Throttler(
                rate_limit=int(config["request_rate_limit"]),
                period=float(config.get("request_rate_period", 1)),
            )
        return ChainMetadataResolver(
            network,
            w3,
            batch_size=int(config.get("batch_size", 50)),
            throttler=throttler,
        )

    async def get_metadata(self, addresses: Sequence[str]) -> Dict[str, OnchainMetadata]:
        metadata: Dict[str, OnchainMetadata] = {}

        for batch in chunked(addresses, self.batch_size):
            results = await self.aggregate(batch)
            for index, address in enumerate(batch):
                name, symbol, decimals = results[3 * index : 3 * index + 3]
                metadata[address] = decode_erc20_metadata(name, symbol, decimals)

        degraded = [
            address for address, meta in metadata.items() if meta.is_degraded
        ]
        if degraded:
            logger.warning(
                f"Could not decode on-chain metadata of {len(degraded)} token(s) "
                f"on {self.network.network}: {', '.join(degraded)}"
            )

        return metadata

    async def aggregate(self, addresses: Sequence[str]) -> List[Optional[bytes]]:
        """
        Run name/symbol/decimals for every address and return the raw return
        data of each call, None for calls that reverted.
        """
        calls: List[Tuple[str, bytes]] = []
        for address in addresses:
            checksummed = to_checksum_address(address)
            calls.append((checksummed, NAME_SELECTOR))
            calls.append((checksummed, SYMBOL_SELECTOR))
            calls.append((checksummed, DECIMALS_SELECTOR))

        logger.debug(
            f"Calling multicall on {self.network.network} for {len(addresses)} tokens"
        )

        try:
            with metrics.time_operation(
                metrics.api_request_duration, service="rpc", endpoint="tryAggregate"
            ):
                raw = await self._call(
                    {
                        "to": to_checksum_address(self.network.multicall_address),
                        "data": encode_try_aggregate(calls),
                    }
                )
            results = decode_try_aggregate(bytes(raw))
        except PROVIDER_ERRORS as exc:
            metrics.api_request_total.labels(
                service="rpc", endpoint="tryAggregate", status="error"
            ).inc()
            raise ChainProviderError(
                f"Multicall to {self.network.network} failed: {exc}"
            ) from exc

        if len(results) != len(calls):
            raise ChainProviderError(
                f"Multicall on {self.network.network} returned {len(results)} "
                f"results for {len(calls)} calls"
            )

        metrics.api_request_total.labels(
            service="rpc", endpoint="tryAggregate", status="success"
        ).inc()
        return [payload if success else None for success, payload in results]

    async def _call(self, transaction: Dict) -> bytes:
        if self.throttler is None:
            return await self.w3.eth.call(transaction)
        async with self.throttler:
            return await self.w3.eth.call(transaction)
