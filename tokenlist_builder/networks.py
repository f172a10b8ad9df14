import dataclasses
import os
from typing import Any, Dict, Mapping, Optional

from tokenlist_builder.models import Network, normalize_address

INFURA_RPC_URL = "https://{network}.infura.io/v3/{infura_key}"


@dataclasses.dataclass(frozen=True)
class NetworkConfig:
    network: Network
    chain_id: int
    rpc_url: str
    multicall_address: str
    # None when CoinGecko does not index the network
    coingecko_platform: Optional[str]
    trustwallet_blockchain: str

    def endpoint(self) -> str:
        return self.rpc_url.format(infura_key=os.environ.get("INFURA_KEY", ""))


NETWORKS: Dict[Network, NetworkConfig] = {
    Network.HOMESTEAD: NetworkConfig(
        network=Network.HOMESTEAD,
        chain_id=1,
        rpc_url=INFURA_RPC_URL.replace("{network}", "mainnet"),
        multicall_address="0x5ba1e12693dc8f9c48aad8770482f4739beed696",
        coingecko_platform="ethereum",
        trustwallet_blockchain="ethereum",
    ),
    Network.GOERLI: NetworkConfig(
        network=Network.GOERLI,
        chain_id=5,
        rpc_url=INFURA_RPC_URL.replace("{network}", "goerli"),
        multicall_address="0x5ba1e12693dc8f9c48aad8770482f4739beed696",
        coingecko_platform=None,
        trustwallet_blockchain="ethereum",
    ),
    Network.POLYGON: NetworkConfig(
        network=Network.POLYGON,
        chain_id=137,
        rpc_url=INFURA_RPC_URL.replace("{network}", "polygon-mainnet"),
        multicall_address="0xe2530198A125Dcdc8Fc5476e07BFDFb5203f1102",
        coingecko_platform="polygon-pos",
        trustwallet_blockchain="polygon",
    ),
    Network.ARBITRUM: NetworkConfig(
        network=Network.ARBITRUM,
        chain_id=42161,
        rpc_url=INFURA_RPC_URL.replace("{network}", "arbitrum-mainnet"),
        multicall_address="0xd67950096d029af421a946ffb1e04c94caf8e256",
        coingecko_platform="arbitrum-one",
        trustwallet_blockchain="ethereum",
    ),
    Network.OPTIMISM: NetworkConfig(
        network=Network.OPTIMISM,
        chain_id=10,
        rpc_url=INFURA_RPC_URL.replace("{network}", "optimism-mainnet"),
        multicall_address="0x2dc0e2aa608532da689e89e237df582b783e552c",
        coingecko_platform="optimistic-ethereum",
        trustwallet_blockchain="ethereum",
    ),
}


def get_network_config(
    network: Network, overrides: Optional[Dict[str, Any]] = None
) -> NetworkConfig:
    """
    Look up the static config of a network, applying any per-network fields
    from the `networks` section of the YAML config.
    """
    config = NETWORKS[network]
    if overrides and str(network) in overrides:
        config = dataclasses.replace(config, **overrides[str(network)])
    return config


# Bridged and testnet tokens mapped to the mainnet token they mirror, used
# when an override or icon is only known under the mainnet address.
MAINNET_ADDRESSES: Dict[str, str] = {
    # Goerli
    "0xfA8449189744799aD2AcE7e0EBAC8BB7575eff47": "0xba100000625a3754423978a60c9317c58a424e3D",
    "0x8c9e6c40d3402480ACE624730524fACC5482798c": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    "0x1f1f156E0317167c11Aa412E3d1435ea29Dc3cCE": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    "0xe0C9275E44Ea80eF17579d33c55136b7DA269aEb": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "0x37f03a12241E9FD3658ad6777d289c3fb8512Bc9": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    "0x829f35cEBBCd47d3c120793c12f7A232c903138B": "0x956F47F50A910163D8BF957Cf5846D573E7f87CA",
    "0xFF386a3d08f80AC38c77930d173Fa56C6286Dc8B": "0x6810e776880C02933D47DB1b9fc05908e5386b96",
    "0x4Cb1892FdDF14f772b2E39E299f44B2E5DA90d04": "0x71fc860F7D3A592A4a98740e39dB31d25db65ae8",
    "0x811151066392fd641Fe74A9B55a712670572D161": "0x9bA00D6856a4eDF4665BcA2C2309936572473B7E",
    "0x89534a24450081Aa267c79B07411e9617D984052": "0x02d60b84491589974263d922d9cc7a3152618ef6",
    "0xeFD681A82970AC5d980b9B2D40499735e7BF3F1F": "0x2bbf681cc4eb09218bee85ea2a5d3d13fa40fc0c",
    "0x0595D1Df64279ddB51F1bdC405Fe2D0b4Cc86681": "0x9210f1204b5a24742eba12f710636d76240df3d0",
    "0x5cEA6A84eD13590ED14903925Fa1A73c36297d99": "0x804cdb9116a10bb78768d3252355a1b18067bf8f",
    "0x13ACD41C585d7EbB4a9460f7C8f50BE60DC080Cd": "0x7b50775383d3d6f0215a8f290f2c9e2eebbeceb2",
    # Kovan
    "0xdFCeA9088c8A88A76FF74892C1457C17dfeef9C1": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    "0x41286Bb1D3E870f3F750eB7E1C25d7E48c8A1Ac7": "0xba100000625a3754423978a60c9317c58a424e3D",
    "0xc2569dd7d0fd715B054fBf16E75B001E5c0C1115": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "0xAf9ac3235be96eD496db7969f60D354fe5e426B0": "0x9f8F72aA9304c8B593d555F12eF6589cC3A579A2",
    "0x04DF6e4121c27713ED22341E7c7Df330F56f289B": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
    "0x8F4beBF498cc624a0797Fe64114A6Ff169EEe078": "0xbC396689893D065F41bc2C6EcbeE5e0085233447",
    "0x1C8E3Bcb3378a443CC591f154c5CE0EBb4dA9648": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
}


class MainnetAddressMap:
    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        if mapping is None:
            mapping = MAINNET_ADDRESSES
        self.mapping: Dict[str, str] = {
            normalize_address(address.lower()): normalize_address(
                mainnet_address.lower()
            )
            for address, mainnet_address in mapping.items()
        }

    def map(self, address: str) -> str:
        return self.mapping.get(address, address)

    def __contains__(self, address: str) -> bool:
        return address in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)
