import dataclasses
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_utils import is_address, to_checksum_address

from tokenlist_builder.errors import InputFileError, InvalidAddress

UNKNOWN = "UNKNOWN"
DEFAULT_DECIMALS = 18


class Network(str, Enum):
    HOMESTEAD = "homestead"
    GOERLI = "goerli"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "Network":
        if name == "mainnet":
            return cls.HOMESTEAD
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f'Invalid network: "{name}"') from None


class ListClass(str, Enum):
    LISTED = "listed"
    VETTED = "vetted"
    UNTRUSTED = "untrusted"

    def __str__(self) -> str:
        return self.value

    @property
    def is_trusted(self) -> bool:
        """
        Trusted lists abort the build on any invalid token.
        """
        return self is not ListClass.UNTRUSTED


def normalize_address(address: Any) -> str:
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddress(f"Invalid address: {address!r}")
    return to_checksum_address(address)


@dataclasses.dataclass(frozen=True)
class OnchainMetadata:
    name: str = UNKNOWN
    symbol: str = UNKNOWN
    decimals: int = DEFAULT_DECIMALS
    # False when `decimals` is the default rather than a decoded value
    decimals_known: bool = False

    @property
    def name_known(self) -> bool:
        return self.name != UNKNOWN

    @property
    def symbol_known(self) -> bool:
        return self.symbol != UNKNOWN

    @property
    def is_degraded(self) -> bool:
        return not (self.name_known and self.symbol_known and self.decimals_known)


@dataclasses.dataclass(frozen=True)
class MetadataOverride:
    address: Optional[str] = None
    chain_id: Optional[int] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    logo_uri: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MetadataOverride":
        address = data.get("address")
        return MetadataOverride(
            address=normalize_address(address) if address is not None else None,
            chain_id=data.get("chainId"),
            name=data.get("name"),
            symbol=data.get("symbol"),
            decimals=data.get("decimals"),
            logo_uri=data.get("logoURI"),
        )

    def merged(self, other: "MetadataOverride") -> "MetadataOverride":
        """
        Shallow merge: every field `other` sets replaces ours.
        """
        updates = {
            field.name: getattr(other, field.name)
            for field in dataclasses.fields(other)
            if getattr(other, field.name) is not None
        }
        return dataclasses.replace(self, **updates)

    def is_complete(self) -> bool:
        return (
            bool(self.name)
            and bool(self.symbol)
            and bool(self.decimals)
            and bool(self.logo_uri)
        )


@dataclasses.dataclass(frozen=True)
class TokenInfo:
    address: str
    chain_id: int
    name: str
    symbol: str
    decimals: int
    logo_uri: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.address, self.chain_id)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "address": self.address,
            "chainId": self.chain_id,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }
        if self.logo_uri:
            data["logoURI"] = self.logo_uri
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TokenInfo":
        try:
            return TokenInfo(
                address=normalize_address(data["address"]),
                chain_id=int(data["chainId"]),
                name=data["name"],
                symbol=data["symbol"],
                decimals=int(data["decimals"]),
                logo_uri=data.get("logoURI"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InputFileError(f"Malformed token entry {data!r}: {exc}") from exc


@dataclasses.dataclass(frozen=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @staticmethod
    def parse(value: str) -> "Version":
        major, minor, patch = (int(part) for part in value.split("."))
        return Version(major, minor, patch)

    def to_dict(self) -> Dict[str, int]:
        return {"major": self.major, "minor": self.minor, "patch": self.patch}


@dataclasses.dataclass(frozen=True)
class TokenList:
    name: str
    timestamp: str
    logo_uri: str
    keywords: List[str]
    version: Version
    tokens: List[TokenInfo]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "logoURI": self.logo_uri,
            "keywords": list(self.keywords),
            "version": self.version.to_dict(),
            "tokens": [token.to_dict() for token in self.tokens],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "TokenList":
        try:
            version = data["version"]
            return TokenList(
                name=data["name"],
                timestamp=data["timestamp"],
                logo_uri=data.get("logoURI", ""),
                keywords=list(data.get("keywords", [])),
                version=Version(
                    int(version["major"]), int(version["minor"]), int(version["patch"])
                ),
                tokens=[TokenInfo.from_dict(token) for token in data["tokens"]],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InputFileError(f"Malformed token list: {exc}") from exc
