import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from dotenv import load_dotenv
from loguru import logger

from tokenlist_builder import TokenListBuilder
from tokenlist_builder.ipfs import IpfsPublisher
from tokenlist_builder.metrics import metrics
from tokenlist_builder.models import Network


def load_config(path: Optional[str]) -> Dict[str, Any]:
    if path is None:
        return {}
    config: Dict[str, Any] = yaml.safe_load(open(path, "r")) or {}  # type: ignore[assignment]
    return config


def parse_networks(names: Tuple[str, ...]) -> List[Network]:
    try:
        return [Network.parse(name) for name in names]
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="NETWORK") from None


@click.group()
@click.option(
    "--config",
    help="Path to YAML/JSON file with general config",
    envvar="CONFIG",
    default=None,
)
@click.option(
    "--root",
    help="Directory holding lists/, data/, assets/ and generated/",
    envvar="TOKENLISTS_ROOT",
    default=".",
)
@click.option(
    "--metrics-file",
    help="Write Prometheus metrics to this file when done",
    envvar="METRICS_FILE",
    default=None,
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], root: str, metrics_file: Optional[str]) -> None:
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["root"] = Path(root)
    ctx.obj["metrics_file"] = metrics_file


@cli.command()
@click.argument("networks", nargs=-1)
@click.option(
    "--skip-publish",
    is_flag=True,
    default=False,
    help="Write the lists locally without pinning them to IPFS",
)
@click.option(
    "--merge/--no-merge",
    default=True,
    help="Merge per-network lists into cross-network lists after building",
)
@click.pass_context
def build(ctx: click.Context, networks: Tuple[str, ...], skip_publish: bool, merge: bool) -> None:
    """
    Build the token lists of NETWORKS (all networks when omitted).
    """
    config: Dict[str, Any] = ctx.obj["config"]
    selected = parse_networks(networks) if networks else list(Network)

    publisher = None
    if not skip_publish:
        publisher = IpfsPublisher.from_env(
            config.get("ipfs", {}), timeout=float(config.get("request_timeout", 60))
        )

    builder = TokenListBuilder(config, ctx.obj["root"], publisher=publisher)
    succeeded = asyncio.run(builder.run(selected))

    if succeeded and merge:
        builder.merge()
    elif merge:
        logger.warning(
            "Skipping cross-network merge, failed to build: "
            + ", ".join(str(network) for network in builder.failed_networks)
        )

    write_metrics(ctx)
    if not succeeded:
        sys.exit(1)


@cli.command()
@click.argument("networks", nargs=-1)
@click.pass_context
def merge(ctx: click.Context, networks: Tuple[str, ...]) -> None:
    """
    Merge generated per-network lists (of NETWORKS, first one wins).
    """
    builder = TokenListBuilder(ctx.obj["config"], ctx.obj["root"])
    builder.merge(parse_networks(networks) if networks else None)
    write_metrics(ctx)


def write_metrics(ctx: click.Context) -> None:
    if ctx.obj["metrics_file"]:
        metrics.write(ctx.obj["metrics_file"])


load_dotenv()

logger.remove()
logger.add(
    sys.stdout,
    serialize=(not os.environ.get("DEV_MODE")),
    level=os.environ.get("LOG_LEVEL", "INFO"),
)
