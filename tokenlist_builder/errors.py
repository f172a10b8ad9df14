from typing import Iterable, List


class TokenListError(Exception):
    pass


class InvalidAddress(TokenListError, ValueError):
    pass


class InputFileError(TokenListError):
    """
    A required input file is missing or can not be parsed.
    """


class AssetFetchError(TokenListError):
    pass


class ChainProviderError(TokenListError):
    """
    The chain could not be queried at all, as opposed to a single token
    failing to decode.
    """


class TokenListValidationError(TokenListError):
    def __init__(self, list_name: str, addresses: Iterable[str]) -> None:
        self.addresses: List[str] = sorted(set(addresses))
        super().__init__(
            f"Token list {list_name} is invalid, offending tokens: "
            + ", ".join(self.addresses)
        )


class MissingCredentials(TokenListError):
    pass


class PublishError(TokenListError):
    pass
