import asyncio
from unittest.mock import AsyncMock, patch

from tokenlist_builder.coingecko import CoingeckoMetadataResolver
from tokenlist_builder.models import MetadataOverride, Network
from tokenlist_builder.networks import NETWORKS

BAL = "0xba100000625a3754423978a60c9317c58a424e3D"
POLYGON_BAL = "0x9a71012B13CA4d3D0Cdc72A177DF3ef03b0E76A3"


class MockCoinGeckoAPI:
    def __init__(self, coins=None):
        self.coins = coins or {}
        self.requests = []

    def get_coin_info_from_contract_address_by_id(self, id, contract_address):
        self.requests.append((id, contract_address))
        if contract_address not in self.coins:
            raise ValueError({"error": "coin not found"})
        return self.coins[contract_address]


def bal_coin():
    return {
        "name": "Balancer",
        "symbol": "bal",
        "image": {"large": "https://assets.coingecko.com/coins/images/11683/large/Balancer.png"},
        "platforms": {
            "ethereum": BAL.lower(),
            "polygon-pos": POLYGON_BAL.lower(),
        },
    }


def test_get_metadata():
    api = MockCoinGeckoAPI({POLYGON_BAL.lower(): bal_coin()})
    resolver = CoingeckoMetadataResolver(NETWORKS[Network.POLYGON], api, pause=0)

    mainnet_address, meta = asyncio.run(resolver.get_metadata(POLYGON_BAL))

    assert api.requests == [("polygon-pos", POLYGON_BAL.lower())]
    assert mainnet_address == BAL
    assert meta.name == "Balancer"
    assert meta.symbol == "bal"
    assert meta.logo_uri.endswith("Balancer.png")
    assert meta.decimals is None


def test_unknown_token_is_empty():
    resolver = CoingeckoMetadataResolver(
        NETWORKS[Network.HOMESTEAD], MockCoinGeckoAPI(), pause=0
    )

    assert asyncio.run(resolver.get_metadata(BAL)) == (None, MetadataOverride())


def test_malformed_response_is_empty():
    api = MockCoinGeckoAPI({BAL.lower(): {"name": "Balancer"}})
    resolver = CoingeckoMetadataResolver(NETWORKS[Network.HOMESTEAD], api, pause=0)

    assert asyncio.run(resolver.get_metadata(BAL)) == (None, MetadataOverride())


def test_unindexed_network_makes_no_requests():
    api = MockCoinGeckoAPI({BAL.lower(): bal_coin()})
    resolver = CoingeckoMetadataResolver(NETWORKS[Network.GOERLI], api)

    assert asyncio.run(resolver.get_metadata(BAL)) == (None, MetadataOverride())
    assert api.requests == []


def test_pauses_after_each_batch():
    resolver = CoingeckoMetadataResolver(
        NETWORKS[Network.HOMESTEAD], MockCoinGeckoAPI(), batch_size=10, pause=2.0
    )

    async def lookup_all():
        for _ in range(25):
            await resolver.get_metadata(BAL)

    with patch("tokenlist_builder.coingecko.asyncio.sleep", new=AsyncMock()) as sleep:
        asyncio.run(lookup_all())

    assert resolver.lookups == 25
    assert sleep.await_count == 2
    sleep.assert_awaited_with(2.0)


def test_mainnet_address_requires_valid_address():
    assert CoingeckoMetadataResolver.mainnet_address({"platforms": {"ethereum": ""}}) is None
    assert CoingeckoMetadataResolver.mainnet_address({}) is None
