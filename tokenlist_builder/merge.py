from typing import Dict, List, Mapping, Optional, Sequence, TypeVar

from loguru import logger

from tokenlist_builder.assets import ExistingMetadataStore, MetadataMap
from tokenlist_builder.coingecko import CoingeckoMetadataResolver
from tokenlist_builder.models import (
    DEFAULT_DECIMALS,
    UNKNOWN,
    MetadataOverride,
    OnchainMetadata,
    TokenInfo,
)

T = TypeVar("T")


def first_of(*values: Optional[T]) -> Optional[T]:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_token(
    address: str,
    chain_id: int,
    onchain: OnchainMetadata,
    manual: MetadataOverride,
    external: MetadataOverride,
    existing: MetadataOverride,
    icon: Optional[str] = None,
) -> TokenInfo:
    """
    Combine every source of metadata for one token. Each field is resolved
    independently, manual overrides first and previously published metadata
    last; the on-chain sentinels are only used when nothing else knows the
    field. Decimals never come from CoinGecko.
    """
    name = first_of(
        manual.name,
        external.name,
        onchain.name if onchain.name_known else None,
        existing.name,
    )
    symbol = first_of(
        manual.symbol,
        onchain.symbol if onchain.symbol_known else None,
        external.symbol,
        existing.symbol,
    )
    decimals = first_of(
        manual.decimals,
        onchain.decimals if onchain.decimals_known else None,
        existing.decimals,
    )
    logo_uri = first_of(manual.logo_uri, icon, external.logo_uri, existing.logo_uri)

    return TokenInfo(
        address=address,
        chain_id=chain_id,
        name=name if name is not None else UNKNOWN,
        symbol=symbol if symbol is not None else UNKNOWN,
        decimals=decimals if decimals is not None else DEFAULT_DECIMALS,
        logo_uri=logo_uri,
    )


class MetadataMerger:
    def __init__(
        self,
        chain_id: int,
        external: CoingeckoMetadataResolver,
        store: ExistingMetadataStore,
        overwrites: MetadataMap,
    ) -> None:
        self.chain_id = chain_id
        self.external = external
        self.store = store
        self.overwrites = overwrites

    def manual_override(self, address: str) -> MetadataOverride:
        return self.store.lookup(self.overwrites, address)

    def needs_resolving(self, address: str) -> bool:
        return not self.manual_override(address).is_complete()

    async def get_tokens(
        self,
        addresses: Sequence[str],
        onchain: Mapping[str, OnchainMetadata],
    ) -> List[TokenInfo]:
        """
        Resolve every address in order. External lookups go one at a time
        through the rate limited resolver.
        """
        tokens = []
        for address in addresses:
            tokens.append(await self.get_token(address, onchain.get(address)))
        return tokens

    async def get_token(
        self, address: str, onchain: Optional[OnchainMetadata]
    ) -> TokenInfo:
        manual = self.manual_override(address)

        # A complete override wins every field, skip the lookups
        if manual.is_complete():
            return TokenInfo(
                address=address,
                chain_id=self.chain_id,
                name=manual.name,
                symbol=manual.symbol,
                decimals=manual.decimals,
                logo_uri=manual.logo_uri,
            )

        mainnet_address, external = await self.external.get_metadata(address)

        icon = None
        if mainnet_address is not None:
            icon = self.store.icon_lookup(mainnet_address)
        if icon is None:
            icon = self.store.icon_lookup(address)

        return resolve_token(
            address,
            self.chain_id,
            onchain if onchain is not None else OnchainMetadata(),
            manual,
            external,
            self.store.lookup(self.store.metadata, address),
            icon,
        )


def degraded_tokens(tokens: Sequence[TokenInfo]) -> Dict[str, TokenInfo]:
    degraded = {
        token.address: token
        for token in tokens
        if token.name == UNKNOWN or token.symbol == UNKNOWN
    }
    for address, token in degraded.items():
        logger.warning(
            f"Token {address} has unknown metadata (name: {token.name}, symbol: {token.symbol}), "
            "add it to the metadata overwrite file"
        )
    return degraded
