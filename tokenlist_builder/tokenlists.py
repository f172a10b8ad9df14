import dataclasses
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from tokenlist_builder.errors import InputFileError, InvalidAddress
from tokenlist_builder.models import (
    TokenInfo,
    TokenList,
    Version,
    normalize_address,
)


def read_json(path: Path) -> Any:
    try:
        with open(path, "r") as file:
            return json.load(file)
    except FileNotFoundError as exc:
        raise InputFileError(f"Input file not found: {path}") from exc
    except ValueError as exc:
        raise InputFileError(f"Malformed JSON in {path}: {exc}") from exc


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as file:
        json.dump(data, file, indent=4, ensure_ascii=False)
        file.write("\n")


def load_addresses(path: Path) -> List[str]:
    """
    Read a `lists/<network>.<class>.json` input and return its addresses in
    checksummed form, in order, without duplicates.
    """
    data = read_json(path)
    if not isinstance(data, dict) or not isinstance(data.get("tokens"), list):
        raise InputFileError(f"{path} must contain a `tokens` array")

    addresses: List[str] = []
    seen = set()
    for raw in data["tokens"]:
        try:
            address = normalize_address(raw)
        except InvalidAddress as exc:
            raise InputFileError(f"{path}: {exc}") from exc
        if address != raw:
            logger.warning(f"Address not checksummed in {path}: {raw} (should be {address})")
        if address in seen:
            logger.warning(f"Duplicate address in {path}: {address}")
            continue
        seen.add(address)
        addresses.append(address)
    return addresses


def load_token_list(path: Path) -> Optional[TokenList]:
    """
    The previously published list, or None if we never generated it.
    """
    if not path.exists():
        return None
    return TokenList.from_dict(read_json(path))


def write_token_list(path: Path, token_list: TokenList) -> None:
    write_json(path, token_list.to_dict())


def day_timestamp(now: Optional[datetime] = None) -> str:
    """
    Timestamp of the start of the current UTC day, so that rebuilding on the
    same day produces the same document.
    """
    now = now if now is not None else datetime.now(timezone.utc)
    day = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return day.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def sort_tokens(tokens: Sequence[TokenInfo]) -> List[TokenInfo]:
    return sorted(tokens, key=lambda token: token.name)


def build_token_list(
    name: str,
    logo_uri: str,
    keywords: Sequence[str],
    version: Version,
    tokens: Sequence[TokenInfo],
    now: Optional[datetime] = None,
) -> TokenList:
    return TokenList(
        name=name,
        timestamp=day_timestamp(now),
        logo_uri=logo_uri,
        keywords=list(keywords),
        version=version,
        tokens=sort_tokens(tokens),
    )


def merge_token_lists(token_lists: Sequence[TokenList]) -> TokenList:
    """
    Merge per-network lists into one. The first list provides the document's
    name, timestamp, logo, keywords and version; tokens are deduplicated by
    (address, chainId) and sorted by name.
    """
    if not token_lists:
        raise ValueError("Need at least one token list to merge")

    merger = token_lists[0]
    tokens: Dict[tuple, TokenInfo] = {}
    for token_list in token_lists:
        for token in token_list.tokens:
            tokens.setdefault(token.key, token)

    return dataclasses.replace(merger, tokens=sort_tokens(list(tokens.values())))


def merge_files(paths: Sequence[Path], output_path: Path) -> Optional[TokenList]:
    token_lists = []
    for path in paths:
        token_list = load_token_list(path)
        if token_list is None:
            logger.warning(f"Skipping missing token list {path}")
            continue
        token_lists.append(token_list)

    if not token_lists:
        logger.warning(f"No token lists to merge into {output_path}")
        return None

    merged = merge_token_lists(token_lists)
    write_token_list(output_path, merged)
    logger.info(
        f"Merged {len(token_lists)} token lists into {output_path} ({len(merged.tokens)} tokens)"
    )
    return merged
