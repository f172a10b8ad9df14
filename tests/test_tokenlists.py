import json
from datetime import datetime, timedelta, timezone

import pytest

from tokenlist_builder.errors import InputFileError
from tokenlist_builder.models import TokenInfo, TokenList, Version
from tokenlist_builder.tokenlists import (
    build_token_list,
    day_timestamp,
    load_addresses,
    load_token_list,
    merge_files,
    merge_token_lists,
    write_token_list,
)

AAVE = "0x7Fc66500c84A76Ad7e9c93437bFc5Ac33E2DDaE9"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
WBTC = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"


def token_list(version, tokens, name="Balancer"):
    return TokenList(
        name=name,
        timestamp="2023-01-01T00:00:00.000Z",
        logo_uri="https://balancer.png",
        keywords=["balancer", "listed"],
        version=version,
        tokens=tokens,
    )


def test_load_addresses(tmp_path):
    path = tmp_path / "homestead.listed.json"
    path.write_text(json.dumps({"tokens": [DAI.lower(), AAVE, DAI]}))

    assert load_addresses(path) == [DAI, AAVE]


def test_load_addresses_errors(tmp_path):
    with pytest.raises(InputFileError):
        load_addresses(tmp_path / "missing.json")

    no_tokens = tmp_path / "no_tokens.json"
    no_tokens.write_text(json.dumps({"addresses": [DAI]}))
    with pytest.raises(InputFileError):
        load_addresses(no_tokens)

    bad_address = tmp_path / "bad_address.json"
    bad_address.write_text(json.dumps({"tokens": [DAI, "0xnope"]}))
    with pytest.raises(InputFileError):
        load_addresses(bad_address)


def test_day_timestamp():
    now = datetime(2023, 3, 14, 15, 9, 26, tzinfo=timezone(timedelta(hours=-5)))

    assert day_timestamp(now) == "2023-03-14T00:00:00.000Z"
    assert day_timestamp(now + timedelta(hours=4)) == "2023-03-15T00:00:00.000Z"


def test_build_token_list_sorts_by_name():
    built = build_token_list(
        name="Balancer",
        logo_uri="https://balancer.png",
        keywords=["balancer", "vetted"],
        version=Version(1, 0, 0),
        tokens=[
            TokenInfo(DAI, 1, "Dai Stablecoin", "DAI", 18),
            TokenInfo(AAVE, 1, "Aave Token", "AAVE", 18),
        ],
        now=datetime(2023, 1, 1, 12, tzinfo=timezone.utc),
    )

    assert [token.symbol for token in built.tokens] == ["AAVE", "DAI"]
    assert built.timestamp == "2023-01-01T00:00:00.000Z"
    assert built.keywords == ["balancer", "vetted"]


def test_token_list_document_layout(tmp_path):
    path = tmp_path / "generated" / "homestead.listed.tokenlist.json"
    original = token_list(
        Version(1, 2, 0),
        [
            TokenInfo(AAVE, 1, "Aave Token", "AAVE", 18, "https://aave.png"),
            TokenInfo(DAI, 1, "Dai Stablecoin", "DAI", 18),
        ],
    )

    write_token_list(path, original)
    document = json.loads(path.read_text())

    assert list(document) == ["name", "timestamp", "logoURI", "keywords", "version", "tokens"]
    assert document["version"] == {"major": 1, "minor": 2, "patch": 0}
    assert list(document["tokens"][0]) == ["address", "chainId", "name", "symbol", "decimals", "logoURI"]
    assert "logoURI" not in document["tokens"][1]
    assert path.read_text().endswith("}\n")
    assert load_token_list(path) == original
    assert load_token_list(tmp_path / "missing.json") is None


def test_merge_token_lists():
    homestead = token_list(
        Version(1, 2, 0),
        [
            TokenInfo(AAVE, 1, "Aave Token", "AAVE", 18),
            TokenInfo(DAI, 1, "Zeta", "ZETA", 18),
        ],
    )
    goerli = token_list(
        Version(0, 5, 1),
        [
            TokenInfo(WBTC, 5, "Bitcoin", "WBTC", 8),
            TokenInfo(AAVE, 1, "Aave Token (duplicate)", "AAVE", 18),
        ],
        name="Goerli",
    )

    merged = merge_token_lists([homestead, goerli])

    assert merged.name == "Balancer"
    assert merged.version == Version(1, 2, 0)
    assert [token.name for token in merged.tokens] == ["Aave Token", "Bitcoin", "Zeta"]


def test_merge_token_lists_requires_input():
    with pytest.raises(ValueError):
        merge_token_lists([])


def test_merge_files_skips_missing(tmp_path):
    homestead = tmp_path / "homestead.listed.tokenlist.json"
    output = tmp_path / "listed.tokenlist.json"
    write_token_list(homestead, token_list(Version(1, 0, 0), [TokenInfo(DAI, 1, "Dai", "DAI", 18)]))

    merged = merge_files([homestead, tmp_path / "goerli.listed.tokenlist.json"], output)

    assert merged is not None
    assert load_token_list(output) == merged
    assert merge_files([tmp_path / "missing.json"], tmp_path / "none.json") is None
    assert not (tmp_path / "none.json").exists()
