import pytest

from tokenlist_builder.check.token import (
    TokenBridgedNameCheck,
    TokenKnownMetadataCheck,
    TokenLogoCheck,
    TokenRequiredFieldsCheck,
)
from tokenlist_builder.errors import TokenListValidationError
from tokenlist_builder.models import ListClass, TokenInfo
from tokenlist_builder.validation import Validator

BAL = "0xba100000625a3754423978a60c9317c58a424e3D"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"

GOOD = TokenInfo(BAL, 1, "Balancer", "BAL", 18, "https://bal.png")
UNKNOWN_TOKEN = TokenInfo(DAI, 1, "UNKNOWN", "UNKNOWN", 18)


def test_token_checks():
    assert TokenRequiredFieldsCheck(GOOD, {}).run()
    assert not TokenRequiredFieldsCheck(TokenInfo(BAL, 1, "Zero", "ZERO", 0, "z.png"), {}).run()
    assert not TokenRequiredFieldsCheck(TokenInfo(BAL, 1, "", "BAL", 18), {}).run()

    assert TokenKnownMetadataCheck(GOOD, {}).run()
    assert not TokenKnownMetadataCheck(UNKNOWN_TOKEN, {}).run()

    assert TokenLogoCheck(GOOD, {}).run()
    assert not TokenLogoCheck(UNKNOWN_TOKEN, {}).run()

    bridged = TokenInfo(BAL, 137, "Balancer (PoS)", "BAL", 18, "https://bal.png")
    assert not TokenBridgedNameCheck(bridged, {}).run()
    assert TokenBridgedNameCheck(bridged, {"forbidden": "(Wormhole)"}).run()


def test_trusted_list_fails_on_invalid_token():
    with pytest.raises(TokenListValidationError) as excinfo:
        Validator().validate("homestead.listed", ListClass.LISTED, [GOOD, UNKNOWN_TOKEN])

    assert excinfo.value.addresses == [DAI]


def test_untrusted_list_only_logs():
    failed = Validator().validate(
        "homestead.untrusted", ListClass.UNTRUSTED, [GOOD, UNKNOWN_TOKEN]
    )

    assert {check.state().address for check in failed} == {DAI}
    assert {type(check) for check in failed} == {TokenKnownMetadataCheck, TokenLogoCheck}


def test_per_class_config_override():
    validator = Validator(
        {
            "global": {"TokenLogoCheck": {"enable": True}},
            "vetted": {"TokenLogoCheck": {"enable": False}},
        }
    )
    no_logo = TokenInfo(BAL, 1, "Balancer", "BAL", 18)

    assert validator.load_config("TokenLogoCheck", ListClass.VETTED) == {"enable": False}
    assert validator.load_config("TokenBridgedNameCheck", ListClass.VETTED) == {"enable": True}
    assert validator.validate("homestead.vetted", ListClass.VETTED, [no_logo]) == []

    with pytest.raises(TokenListValidationError):
        validator.validate("homestead.listed", ListClass.LISTED, [no_logo])


def test_trusted_list_rejects_zero_decimals():
    zero_decimals = TokenInfo(BAL, 1, "Balancer", "BAL", 0, "https://bal.png")

    with pytest.raises(TokenListValidationError) as excinfo:
        Validator().validate("homestead.listed", ListClass.LISTED, [zero_decimals])

    assert excinfo.value.addresses == [BAL]
