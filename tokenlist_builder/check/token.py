from typing import Any, Dict, Protocol, runtime_checkable

from tokenlist_builder.models import UNKNOWN, TokenInfo

TokenCheckConfig = Dict[str, str | float | int | bool]


@runtime_checkable
class TokenCheck(Protocol):
    def __init__(self, state: TokenInfo, config: TokenCheckConfig) -> None:
        ...

    def state(self) -> TokenInfo:
        ...

    def run(self) -> bool:
        ...

    def error_message(self) -> Dict[str, Any]:
        ...


class TokenRequiredFieldsCheck(TokenCheck):
    def __init__(self, state: TokenInfo, config: TokenCheckConfig) -> None:
        self.__state = state

    def state(self) -> TokenInfo:
        return self.__state

    def run(self) -> bool:
        return bool(
            self.__state.address
            and self.__state.chain_id
            and self.__state.name
            and self.__state.symbol
            and self.__state.decimals
        )

    def error_message(self) -> Dict[str, Any]:
        return {
            "msg": f"{self.__state.address} is missing required fields.",
            "type": "TokenRequiredFieldsCheck",
            "address": self.__state.address,
            "token": self.__state.to_dict(),
        }


class TokenKnownMetadataCheck(TokenCheck):
    def __init__(self, state: TokenInfo, config: TokenCheckConfig) -> None:
        self.__state = state

    def state(self) -> TokenInfo:
        return self.__state

    def run(self) -> bool:
        return self.__state.name != UNKNOWN and self.__state.symbol != UNKNOWN

    def error_message(self) -> Dict[str, Any]:
        return {
            "msg": f"{self.__state.address} has unknown name or symbol.",
            "type": "TokenKnownMetadataCheck",
            "address": self.__state.address,
            "name": self.__state.name,
            "symbol": self.__state.symbol,
        }


class TokenLogoCheck(TokenCheck):
    def __init__(self, state: TokenInfo, config: TokenCheckConfig) -> None:
        self.__state = state

    def state(self) -> TokenInfo:
        return self.__state

    def run(self) -> bool:
        return bool(self.__state.logo_uri)

    def error_message(self) -> Dict[str, Any]:
        return {
            "msg": f"{self.__state.address} ({self.__state.symbol}) has no logo.",
            "type": "TokenLogoCheck",
            "address": self.__state.address,
            "symbol": self.__state.symbol,
        }


class TokenBridgedNameCheck(TokenCheck):
    """
    Tokens bridged to Polygon carry a "(PoS)" suffix in their on-chain name
    which we strip through the overwrite file.
    """

    def __init__(self, state: TokenInfo, config: TokenCheckConfig) -> None:
        self.__state = state
        self.__forbidden: str = str(config.get("forbidden", "(PoS)"))

    def state(self) -> TokenInfo:
        return self.__state

    def run(self) -> bool:
        return self.__forbidden not in self.__state.name

    def error_message(self) -> Dict[str, Any]:
        return {
            "msg": f"{self.__state.address} name {self.__state.name!r} contains {self.__forbidden!r}.",
            "type": "TokenBridgedNameCheck",
            "address": self.__state.address,
            "name": self.__state.name,
        }


TOKEN_CHECKS = [
    TokenRequiredFieldsCheck,
    TokenKnownMetadataCheck,
    TokenLogoCheck,
    TokenBridgedNameCheck,
]
