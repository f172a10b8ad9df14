import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from tokenlist_builder.assets import (
    ExistingMetadataStore,
    load_overwrites,
    merge_metadata,
)
from tokenlist_builder.errors import InputFileError
from tokenlist_builder.models import MetadataOverride, Network, TokenInfo, normalize_address
from tokenlist_builder.networks import NETWORKS, MainnetAddressMap

BAL = "0xba100000625a3754423978a60c9317c58a424e3D"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
GOERLI_BAL = normalize_address("0xfa8449189744799ad2ace7e0ebac8bb7575eff47")


def test_merge_metadata_later_sources_win():
    merged = merge_metadata(
        [
            [MetadataOverride(address=BAL, name="Balancer", symbol="BAL", decimals=18)],
            [MetadataOverride(address=BAL, logo_uri="https://bal.png")],
            [MetadataOverride(address=BAL, name="Balancer Governance Token")],
            [MetadataOverride(name="no address")],
        ]
    )

    assert list(merged) == [BAL]
    assert merged[BAL].name == "Balancer Governance Token"
    assert merged[BAL].symbol == "BAL"
    assert merged[BAL].decimals == 18
    assert merged[BAL].logo_uri == "https://bal.png"


def test_load_overwrites(tmp_path):
    path = tmp_path / "homestead.metadataOverwrite.json"
    path.write_text(
        json.dumps(
            {
                BAL.lower(): {"name": "Balancer", "symbol": "BAL", "decimals": 18},
                DAI: {"logoURI": "https://dai.png"},
            }
        )
    )

    overwrites = load_overwrites(path)

    assert set(overwrites) == {BAL, DAI}
    assert overwrites[BAL].address == BAL
    assert overwrites[BAL].decimals == 18
    assert overwrites[DAI].logo_uri == "https://dai.png"
    assert overwrites[DAI].name is None


def test_load_overwrites_errors(tmp_path):
    with pytest.raises(InputFileError):
        load_overwrites(tmp_path / "missing.json")

    malformed = tmp_path / "malformed.json"
    malformed.write_text("{not json")
    with pytest.raises(InputFileError):
        load_overwrites(malformed)

    bad_address = tmp_path / "bad_address.json"
    bad_address.write_text(json.dumps({"0x1234": {"name": "Nope"}}))
    with pytest.raises(InputFileError):
        load_overwrites(bad_address)


def test_load_local_icons(tmp_path):
    (tmp_path / f"{BAL.lower()}.png").write_bytes(b"")
    (tmp_path / "README.md").write_text("icons")
    (tmp_path / "not-an-address.png").write_bytes(b"")

    store = ExistingMetadataStore(
        NETWORKS[Network.HOMESTEAD], tmp_path, icon_url="https://icons/{address}.png"
    )

    assert store.load_local_icons() == {BAL: f"https://icons/{BAL.lower()}.png"}


def test_missing_icon_directory(tmp_path):
    store = ExistingMetadataStore(NETWORKS[Network.HOMESTEAD], tmp_path / "missing")

    assert store.load_local_icons() == {}


def test_load_precedence(tmp_path):
    (tmp_path / f"{DAI.lower()}.png").write_bytes(b"")
    store = ExistingMetadataStore(
        NETWORKS[Network.HOMESTEAD], tmp_path, icon_url="https://icons/{address}.png"
    )
    trustwallet = [
        {"address": DAI, "name": "Dai", "symbol": "DAI", "decimals": 18, "logoURI": "https://tw/dai.png"},
        {"address": BAL, "name": "Balancer", "symbol": "BAL", "decimals": 18},
        {"address": "not an address", "name": "Broken"},
    ]
    published = [
        TokenInfo(address=BAL, chain_id=1, name="Balancer (published)", symbol="BAL", decimals=18),
    ]

    with patch.object(
        ExistingMetadataStore,
        "fetch_trustwallet_tokens",
        new=AsyncMock(return_value=trustwallet),
    ):
        asyncio.run(store.fetch())
    metadata = store.load(published)

    assert metadata[DAI].name == "Dai"
    assert metadata[DAI].logo_uri == f"https://icons/{DAI.lower()}.png"
    assert metadata[BAL].name == "Balancer (published)"
    assert metadata[BAL].chain_id == 1


def test_lookup_falls_back_to_mainnet_twin(tmp_path):
    store = ExistingMetadataStore(
        NETWORKS[Network.GOERLI], tmp_path, mainnet_map=MainnetAddressMap()
    )
    store.icons = {BAL: "https://icons/bal.png"}
    mapping = {BAL: MetadataOverride(address=BAL, name="Balancer")}

    assert store.lookup(mapping, GOERLI_BAL).name == "Balancer"
    assert store.lookup(mapping, DAI) == MetadataOverride()
    assert store.icon_lookup(GOERLI_BAL) == "https://icons/bal.png"
    assert store.icon_lookup(DAI) is None


def test_mainnet_address_map():
    mainnet_map = MainnetAddressMap({GOERLI_BAL.lower(): BAL.lower()})

    assert GOERLI_BAL in mainnet_map
    assert mainnet_map.map(GOERLI_BAL) == BAL
    assert mainnet_map.map(DAI) == DAI
    assert len(MainnetAddressMap()) > 0
