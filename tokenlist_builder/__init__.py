import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from tokenlist_builder.assets import (
    LOCAL_ICON_URL,
    TRUSTWALLET_TOKENLIST_URL,
    ExistingMetadataStore,
    MetadataMap,
    load_overwrites,
)
from tokenlist_builder.coingecko import CoingeckoMetadataResolver
from tokenlist_builder.errors import (
    MissingCredentials,
    PublishError,
    TokenListValidationError,
)
from tokenlist_builder.ipfs import IpfsPublisher
from tokenlist_builder.merge import MetadataMerger, degraded_tokens
from tokenlist_builder.metrics import metrics
from tokenlist_builder.models import ListClass, Network, TokenList, Version
from tokenlist_builder.networks import MainnetAddressMap, NetworkConfig, get_network_config
from tokenlist_builder.onchain import ChainMetadataResolver
from tokenlist_builder.tokenlists import (
    build_token_list,
    load_addresses,
    load_token_list,
    merge_files,
    write_token_list,
)
from tokenlist_builder.validation import Validator
from tokenlist_builder.versioning import FIRST_VERSIONS, compute_version

DEFAULT_LIST_NAME = "Balancer"
DEFAULT_LIST_LOGO = "https://raw.githubusercontent.com/balancer-labs/pebbles/master/images/pebbles-pad.256w.png"
DEFAULT_MERGED_CLASSES = [ListClass.LISTED, ListClass.VETTED]


def find_duplicates(inputs: Dict[ListClass, List[str]]) -> Dict[str, List[ListClass]]:
    """
    Addresses that appear in more than one list class of a network.
    """
    classes_by_address: Dict[str, List[ListClass]] = {}
    for list_class, addresses in inputs.items():
        for address in addresses:
            classes_by_address.setdefault(address, []).append(list_class)
    return {
        address: classes
        for address, classes in classes_by_address.items()
        if len(classes) > 1
    }


class TokenListBuilder:
    """
    Build, version, write and publish the token lists of each network.

    Networks are built concurrently and independently: a network that fails
    is logged and does not stop the others. Within a network the list
    classes are built in order, each one resolving metadata, merging it,
    computing the next version and publishing.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        root: Path,
        publisher: Optional[IpfsPublisher] = None,
        mainnet_map: Optional[MainnetAddressMap] = None,
        chain_resolver_factory: Callable[..., ChainMetadataResolver] = ChainMetadataResolver.create,
        external_resolver_factory: Callable[..., CoingeckoMetadataResolver] = CoingeckoMetadataResolver.create,
        store_factory: Optional[Callable[[NetworkConfig], ExistingMetadataStore]] = None,
    ) -> None:
        self.config = config
        self.root = Path(root)
        self.publisher = publisher
        self.mainnet_map = mainnet_map if mainnet_map is not None else MainnetAddressMap()
        self.chain_resolver_factory = chain_resolver_factory
        self.external_resolver_factory = external_resolver_factory
        self.store_factory = store_factory if store_factory is not None else self.create_store
        self.validator = Validator(config.get("checks"))
        self.timeout = float(config.get("request_timeout", 60))
        self.failed_networks: List[Network] = []

    def input_path(self, network: Network, list_class: ListClass) -> Path:
        return self.root / "lists" / f"{network}.{list_class}.json"

    def overwrite_path(self, network: Network) -> Path:
        return self.root / "data" / f"{network}.metadataOverwrite.json"

    def output_path(self, network: Network, list_class: ListClass) -> Path:
        return self.root / "generated" / f"{network}.{list_class}.tokenlist.json"

    def merged_path(self, list_class: ListClass) -> Path:
        return self.root / "generated" / f"{list_class}.tokenlist.json"

    def first_version(self, list_class: ListClass) -> Version:
        configured = self.config.get("first_version", {}).get(str(list_class))
        if configured is not None:
            return Version.parse(str(configured))
        return FIRST_VERSIONS[list_class]

    def create_store(self, network: NetworkConfig) -> ExistingMetadataStore:
        assets = self.config.get("assets", {})
        return ExistingMetadataStore(
            network,
            self.root / assets.get("directory", "assets"),
            mainnet_map=self.mainnet_map,
            icon_url=assets.get("icon_url", LOCAL_ICON_URL),
            trustwallet_url=assets.get("trustwallet_url", TRUSTWALLET_TOKENLIST_URL),
            timeout=self.timeout,
        )

    async def run(self, networks: Sequence[Network]) -> bool:
        """
        Build every network, returning whether all of them succeeded.
        """
        results = await asyncio.gather(
            *(self.build_network(network) for network in networks),
            return_exceptions=True,
        )

        self.failed_networks = []
        for network, result in zip(networks, results):
            if isinstance(result, BaseException):
                self.failed_networks.append(network)
                logger.opt(exception=result).error(
                    f"Failed to build {network} token lists: {result}"
                )
        return not self.failed_networks

    async def build_network(self, network: Network) -> Dict[ListClass, Optional[TokenList]]:
        with logger.contextualize(network=str(network)), metrics.time_operation(
            metrics.build_duration, network=str(network)
        ):
            logger.info(f"Building {network} tokenlists")
            network_config = get_network_config(network, self.config.get("networks"))
            overwrites = load_overwrites(self.overwrite_path(network))

            inputs = {
                list_class: load_addresses(self.input_path(network, list_class))
                for list_class in ListClass
            }
            for address, classes in find_duplicates(inputs).items():
                logger.warning(
                    f"Duplicate address {address} in lists: "
                    + ", ".join(str(list_class) for list_class in classes)
                )

            chain = self.chain_resolver_factory(
                network_config, self.config.get("multicall", {}), self.timeout
            )
            external = self.external_resolver_factory(
                network_config, self.config.get("coingecko", {}), self.timeout
            )
            store = self.store_factory(network_config)
            await store.fetch()

            built: Dict[ListClass, Optional[TokenList]] = {}
            for list_class in ListClass:
                built[list_class] = await self.build_list(
                    network_config,
                    list_class,
                    inputs[list_class],
                    overwrites,
                    chain,
                    external,
                    store,
                )
            return built

    async def build_list(
        self,
        network: NetworkConfig,
        list_class: ListClass,
        addresses: List[str],
        overwrites: MetadataMap,
        chain: ChainMetadataResolver,
        external: CoingeckoMetadataResolver,
        store: ExistingMetadataStore,
    ) -> Optional[TokenList]:
        """
        Build one list. Returns None when the list is unchanged since the
        last published version and nothing was written.
        """
        labels = {"network": str(network.network), "list_class": str(list_class)}

        with logger.contextualize(list=str(list_class)):
            logger.info(f"Building {list_class} tokenlist")
            output_path = self.output_path(network.network, list_class)
            current = load_token_list(output_path)

            merger = MetadataMerger(network.chain_id, external, store, overwrites)
            to_resolve = [address for address in addresses if merger.needs_resolving(address)]

            onchain = await chain.get_metadata(to_resolve)
            store.load(current.tokens if current is not None else None)
            tokens = await merger.get_tokens(addresses, onchain)

            degraded = degraded_tokens(tokens)
            metrics.degraded_tokens.labels(**labels).set(len(degraded))

            version = compute_version(
                current.version if current is not None else None,
                current.tokens if current is not None else [],
                tokens,
                self.first_version(list_class),
            )
            if version is None:
                logger.info("Tokenlist is unchanged")
                metrics.lists_total.labels(**labels, result="unchanged").inc()
                return None

            list_config = self.config.get("list", {})
            token_list = build_token_list(
                name=list_config.get("name", DEFAULT_LIST_NAME),
                logo_uri=list_config.get("logoURI", DEFAULT_LIST_LOGO),
                keywords=[list_config.get("keyword", "balancer"), str(list_class)],
                version=version,
                tokens=tokens,
            )

            try:
                self.validator.validate(
                    f"{network.network}.{list_class}", list_class, token_list.tokens
                )
            except TokenListValidationError:
                metrics.lists_total.labels(**labels, result="failed").inc()
                raise

            write_token_list(output_path, token_list)
            metrics.lists_total.labels(**labels, result="generated").inc()
            logger.info(
                f"Wrote {output_path} version {version} with {len(token_list.tokens)} tokens"
            )

            await self.publish(network.network, list_class, token_list)
            return token_list

    async def publish(
        self, network: Network, list_class: ListClass, token_list: TokenList
    ) -> Optional[str]:
        labels = {"network": str(network), "list_class": str(list_class)}
        if self.publisher is None:
            logger.info("Publishing disabled, not uploading tokenlist")
            return None

        key = f"assets/{network}.{list_class}.tokenlist.json"
        try:
            ipfs_hash = await self.publisher.pin(key, token_list.to_dict())
        except MissingCredentials as exc:
            logger.warning(f"Not uploading {key}: {exc}")
            metrics.publish_total.labels(**labels, status="skipped").inc()
            return None
        except PublishError as exc:
            logger.error(f"Failed to upload {key}: {exc}")
            metrics.publish_total.labels(**labels, status="error").inc()
            return None

        metrics.publish_total.labels(**labels, status="success").inc()
        logger.info(f"Tokenlist uploaded for {list_class}: {ipfs_hash}")
        return ipfs_hash

    def merge(
        self,
        networks: Optional[Sequence[Network]] = None,
        list_classes: Optional[Sequence[ListClass]] = None,
    ) -> Dict[ListClass, Optional[TokenList]]:
        """
        Merge the generated per-network lists of each class into one
        cross-network list. The first network's list is the merger.
        """
        merge_config = self.config.get("merge", {})
        if networks is None:
            networks = [
                Network.parse(name)
                for name in merge_config.get("networks", [str(n) for n in Network])
            ]
        if list_classes is None:
            list_classes = [
                ListClass(name)
                for name in merge_config.get(
                    "list_classes", [str(c) for c in DEFAULT_MERGED_CLASSES]
                )
            ]

        return {
            list_class: merge_files(
                [self.output_path(network, list_class) for network in networks],
                self.merged_path(list_class),
            )
            for list_class in list_classes
        }
