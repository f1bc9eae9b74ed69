"""
BridgeWatch command-line interface.

Usage:
    bridgewatch [OPTIONS] COMMAND [ARGS]...

Offline commitment tooling (no state needed):
    bridgewatch leaf 0x098B...2f96
    bridgewatch build-root sanctioned.txt
    bridgewatch prove sanctioned.txt 0x098B...2f96
    bridgewatch verify 0x098B...2f96 --root 0x... --proof 0x... --proof 0x...
    bridgewatch classify 55 --flag 40 --block 80

Stateful commands run against BRIDGEWATCH_STATE_DSN.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import BridgeWatchSettings
from .engine import classify as classify_transfer
from .exceptions import BridgeWatchError
from .hashing import leaf_hash, to_hex
from .logging_config import generate_correlation_id, set_correlation_id, set_transfer_context, setup_logging
from .merkle import SanctionsMerkleTree, verify_proof
from .models import DEFAULT_BLOCK_THRESHOLD, DEFAULT_FLAG_THRESHOLD, DecisionTier
from .stack import ComplianceStack, create_compliance_stack

console = Console()

TIER_STYLES = {
    DecisionTier.APPROVED: "green",
    DecisionTier.FLAGGED: "yellow",
    DecisionTier.BLOCKED: "red",
}


def _read_identities(path: Path) -> Iterator[str]:
    """One address per line; blank lines and # comments are skipped."""
    for line in path.read_text().splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            yield line


def _fail(ctx: click.Context, error: BridgeWatchError) -> NoReturn:
    console.print(f"[red]Error ({error.error_code}): {error.message}[/red]")
    ctx.exit(1)


def _open_stack(ctx: click.Context, read_only: bool = False) -> ComplianceStack:
    try:
        return create_compliance_stack(ctx.obj["settings"], read_only=read_only)
    except BridgeWatchError as e:
        _fail(ctx, e)


@click.group()
@click.version_option(package_name="bridgewatch", message="%(prog)s %(version)s")
@click.option("--state-dsn", envvar="BRIDGEWATCH_STATE_DSN", help="State store DSN")
@click.option("--admin", "admin_address", envvar="BRIDGEWATCH_ADMIN_ADDRESS", help="Administrator address")
@click.option("-v", "--verbose", is_flag=True, help="Enable log output")
@click.pass_context
def cli(ctx, state_dsn: Optional[str], admin_address: Optional[str], verbose: bool):
    """BridgeWatch - sanctions commitment and compliance decision tooling."""
    ctx.ensure_object(dict)

    overrides = {}
    if state_dsn:
        overrides["state_dsn"] = state_dsn
    if admin_address:
        overrides["admin_address"] = admin_address
    try:
        settings = BridgeWatchSettings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise click.ClickException(f"Invalid configuration: {problems}")

    if verbose:
        setup_logging(settings.log_level, settings.log_json, settings.log_file)
    set_correlation_id(generate_correlation_id())

    ctx.obj["settings"] = settings


# ----------------------------------------------------------------------
# Commitment tooling
# ----------------------------------------------------------------------

@cli.command()
@click.argument("address")
@click.pass_context
def leaf(ctx, address: str):
    """Print the leaf hash for an address."""
    try:
        click.echo(to_hex(leaf_hash(address)))
    except BridgeWatchError as e:
        _fail(ctx, e)


@cli.command("build-root")
@click.argument("list_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def build_root(ctx, list_file: Path):
    """Build the commitment root for a sanctions list file."""
    tree = SanctionsMerkleTree()
    try:
        tree.build(_read_identities(list_file))
    except BridgeWatchError as e:
        _fail(ctx, e)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(to_hex(tree.root))
    console.print(f"[dim]{tree.leaf_count} identities committed[/dim]")


@cli.command()
@click.argument("list_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("address")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def prove(ctx, list_file: Path, address: str, as_json: bool):
    """Print the inclusion proof for an address in a sanctions list."""
    tree = SanctionsMerkleTree()
    try:
        tree.build(_read_identities(list_file))
        proof = [to_hex(h) for h in tree.get_proof(address)]
    except BridgeWatchError as e:
        _fail(ctx, e)
    except ValueError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps({"root": to_hex(tree.root), "leaf": to_hex(leaf_hash(address)), "proof": proof}))
        return
    for element in proof:
        click.echo(element)


@cli.command()
@click.argument("address")
@click.option("--root", required=True, help="Commitment root (0x-hex)")
@click.option("--proof", "proof", multiple=True, help="Proof element, bottom level first (repeatable)")
@click.pass_context
def verify(ctx, address: str, root: str, proof: tuple[str, ...]):
    """Verify an inclusion proof against a root."""
    try:
        matched = verify_proof(leaf_hash(address), list(proof), root)
    except BridgeWatchError as e:
        _fail(ctx, e)
    console.print("[red]MATCH[/red]" if matched else "[green]CLEAR[/green]")


@cli.command("classify")
@click.argument("score", type=int)
@click.option("--sanctioned", is_flag=True, help="Sanction verdict is positive")
@click.option("--flag", "flag_threshold", default=DEFAULT_FLAG_THRESHOLD, show_default=True, type=int)
@click.option("--block", "block_threshold", default=DEFAULT_BLOCK_THRESHOLD, show_default=True, type=int)
@click.pass_context
def classify_cmd(ctx, score: int, sanctioned: bool, flag_threshold: int, block_threshold: int):
    """Classify a score without recording anything."""
    try:
        tier = classify_transfer(sanctioned, score, flag_threshold, block_threshold)
    except BridgeWatchError as e:
        _fail(ctx, e)
    console.print(f"[{TIER_STYLES[tier]}]{tier.value.upper()}[/{TIER_STYLES[tier]}]")


# ----------------------------------------------------------------------
# Stateful commands
# ----------------------------------------------------------------------

@cli.command()
@click.argument("root")
@click.option("--caller", required=True, help="Caller address")
@click.pass_context
def commit(ctx, root: str, caller: str):
    """Publish a new sanctions commitment root."""
    stack = _open_stack(ctx)
    try:
        commitment = stack.registry.update_commitment(caller, root)
    except BridgeWatchError as e:
        _fail(ctx, e)
    finally:
        stack.close()
    console.print(f"[green]✓ Root updated[/green] at {commitment.last_updated}")


@cli.command()
@click.argument("flag", type=int)
@click.argument("block", type=int)
@click.option("--caller", required=True, help="Caller address")
@click.pass_context
def thresholds(ctx, flag: int, block: int, caller: str):
    """Update the threshold policy."""
    stack = _open_stack(ctx)
    try:
        stack.engine.update_thresholds(caller, flag, block)
    except BridgeWatchError as e:
        _fail(ctx, e)
    finally:
        stack.close()
    console.print(f"[green]✓ Thresholds set[/green] flag={flag} block={block}")


@cli.command()
@click.argument("transfer_id")
@click.argument("sender")
@click.argument("recipient")
@click.argument("score", type=int)
@click.option("--sanctioned", is_flag=True, help="Sanction verdict is positive")
@click.pass_context
def record(ctx, transfer_id: str, sender: str, recipient: str, score: int, sanctioned: bool):
    """Classify and record a decision for a transfer."""
    stack = _open_stack(ctx)
    set_transfer_context(transfer_id)
    try:
        tier = stack.engine.record_decision(transfer_id, sender, recipient, score, sanctioned)
    except BridgeWatchError as e:
        _fail(ctx, e)
    finally:
        set_transfer_context(None)
        stack.close()
    console.print(f"Decision: [{TIER_STYLES[tier]}]{tier.value.upper()}[/{TIER_STYLES[tier]}]")


@cli.command()
@click.argument("transfer_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, transfer_id: str, as_json: bool):
    """Show the recorded decision for a transfer."""
    stack = _open_stack(ctx, read_only=True)
    try:
        decision = stack.engine.get_record(transfer_id)
    except BridgeWatchError as e:
        _fail(ctx, e)
    finally:
        stack.close()

    if as_json:
        click.echo(json.dumps(decision.to_dict()))
        return

    table = Table(title="Decision Record", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in decision.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show commitment, policy and ledger totals."""
    stack = _open_stack(ctx, read_only=True)
    try:
        commitment = stack.registry.commitment
        policy = stack.engine.policy
        total = stack.engine.total_decisions()
    finally:
        stack.close()

    console.print(f"Sanctions root: {to_hex(commitment.root)}", soft_wrap=True)
    console.print(f"Last updated: {commitment.last_updated}")
    console.print(f"Thresholds: flag={policy.flag_threshold} block={policy.block_threshold}")
    console.print(f"Decisions recorded: {total}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
