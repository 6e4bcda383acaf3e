# auditledger/cli/main.py
"""
CLI for initializing, inspecting, verifying and exporting the local audit ledger.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from auditledger.config import LedgerConfig
from auditledger.core.errors import CommitmentError, LedgerError
from auditledger.core.types import ACTIONS, ACTORS, AuditMetadata, EventDraft
from auditledger.crypto.keyring import Keyring
from auditledger.service import AuditService, ServiceStatus
from auditledger.storage import SQLiteStorage
from auditledger.storage.persistence import Persistence
from auditledger.verify.verifier import LedgerVerifier

app = typer.Typer(
    name="auditledger",
    help="Initialize, inspect, verify and export a hash-chained audit ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DB_HELP = "Path to SQLite database (overrides LEDGER_DB_PATH env var)"


def get_config(db_flag: Optional[Path] = None) -> LedgerConfig:
    config = LedgerConfig.from_env(db_path=db_flag)
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def require_db(config: LedgerConfig) -> None:
    if not config.db_path.exists():
        console.print(f"[red]Database file not found: {config.db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Run: auditledger init")
        console.print("  • Set env var: export LEDGER_DB_PATH=/path/to/your.db")
        console.print("  • Or use --db: auditledger status --db /custom/path.db")
        raise typer.Exit(1)


def open_service(config: LedgerConfig) -> AuditService:
    """Boot the service; a halted ledger is reported and exits 1."""
    try:
        service = AuditService.open(config)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)

    if service.boot() is ServiceStatus.HALTED:
        report_halt(service.halt_reason)
        service.close()
        raise typer.Exit(1)
    return service


def report_halt(reason: str) -> None:
    console.print("[bold red]✗ LEDGER HALTED — integrity compromised[/]")
    console.print(f"  FATAL: {reason}")
    console.print("  No further events will be accepted.")
    console.print("  Recovery: [bold]auditledger wipe --yes[/] (discards the chain, keeps the identity)")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (overrides LEDGER_LOG_LEVEL env var)",
    ),
):
    """Manage the tamper-evident audit ledger."""
    level = (log_level or LedgerConfig.from_env().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def init(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Create the ledger (genesis block) and local identity if they do not exist yet."""
    config = get_config(db)
    service = open_service(config)
    try:
        keypair = service.create_identity()
        console.print(f"[green]✓ Ledger ready at {config.db_path}[/]")
        console.print(f"  Blocks:      {service.ledger.length}")
        console.print(f"  Chain head:  {service.get_chain_head()}")
        console.print(f"  Identity:    KEY-{keypair.fingerprint()}")
    finally:
        service.close()


@app.command()
def status(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Show ledger state, chain head and counts."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        table = Table(title="Ledger Status")
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("Status", service.status.value)
        table.add_row("Ledger state", service.ledger.state.value)
        table.add_row("Blocks", str(service.ledger.length))
        table.add_row("Chain head", service.get_chain_head() or "—")
        table.add_row("Commitment objects", str(len(service.get_commitments())))
        table.add_row("Assets", str(len(service.assets)))
        console.print(table)
    finally:
        service.close()


@app.command()
def head(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Print the current chain head hash (usable as a manual external anchor)."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        console.print(service.get_chain_head() or "")
    finally:
        service.close()


@app.command()
def verify(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Verify the stored chain (hash recomputation + linkage). Read-only."""
    config = get_config(db)
    require_db(config)

    try:
        storage = SQLiteStorage(config.db_path)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)

    try:
        result = LedgerVerifier().verify_from_storage(Persistence(storage))
    except LedgerError as e:
        console.print(f"[red]Verification failed: {str(e)}[/]")
        raise typer.Exit(1)
    finally:
        storage.close()

    if result.is_valid:
        console.print("[green]✓ Ledger is valid[/]")
        console.print(f"  {result.message}")
    else:
        console.print("[red]✗ Verification failed[/]")
        console.print(f"  • [{result.error_index}] {result.category}: {result.message}")
        raise typer.Exit(1)


@app.command()
def events(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent events to show"),
):
    """Show the most recent ledger events, newest first."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        chain = service.get_chain()[:limit]
    finally:
        service.close()

    total = len(chain)
    for offset, event in enumerate(chain):
        console.print(
            f"[bold cyan]{event.timestamp} | {event.actor:16} | {event.action:26} | {event.id}[/]"
        )
        console.print(f"  {event.details[:160]}{'...' if len(event.details) > 160 else ''}")
        console.print(f"  hash {event.hash[:18]}…  prev {event.previous_hash[:18]}")
        if offset < total - 1:
            console.print("  " + "─" * 90)


@app.command()
def append(
    details: str = typer.Argument(..., help="Free-text description of the event"),
    actor: str = typer.Option("USER", "--actor", help=f"One of: {', '.join(ACTORS)}"),
    action: str = typer.Option("MANUAL_INTERVENTION", "--action", help="Event kind"),
    rationale: str = typer.Option("", "--rationale", "-r", help="Justification"),
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Append one event through the sequential append queue."""
    if actor not in ACTORS:
        console.print(f"[red]Unknown actor '{actor}'. Choose from: {', '.join(ACTORS)}[/]")
        raise typer.Exit(2)
    if action not in ACTIONS:
        console.print(f"[red]Unknown action '{action}'. Choose from: {', '.join(ACTIONS)}[/]")
        raise typer.Exit(2)

    config = get_config(db)
    service = open_service(config)
    try:
        draft = EventDraft(
            id=f"EVT-CLI-{service.ledger.length:04d}",
            actor=actor,
            action=action,
            details=details,
            rationale=rationale,
            metadata=AuditMetadata(source_type="USER_INPUT", source_identity="CLI"),
        )

        async def _submit():
            service.submit_event(draft)
            return await service.flush()

        result = asyncio.run(_submit())
        if not result.is_valid:
            report_halt(service.halt_reason)
            raise typer.Exit(1)
        console.print(f"[green]✓ Appended {draft.id}[/]")
        console.print(f"  Chain head: {service.get_chain_head()}")
    finally:
        service.close()


@app.command()
def anchor(
    target: str = typer.Option("LOCAL_RECORD", "--target", help="Label of the external record"),
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Record an external-anchor event for the current head and print the anchored hash."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        async def _anchor():
            root = service.anchor(target)
            await service.flush()
            return root

        root = asyncio.run(_anchor())
        if service.is_halted:
            report_halt(service.halt_reason)
            raise typer.Exit(1)
        console.print(f"[green]✓ Anchored root {root}[/]")
        console.print("  Hand this hash to your external publication channel.")
    finally:
        service.close()


@app.command()
def commit(
    summary: str = typer.Argument(..., help="What is being committed"),
    signer: List[str] = typer.Option(..., "--signer", "-s", help="Signer mark (repeat for council)"),
    commitment_type: str = typer.Option("MEMO", "--type", help="Commitment type"),
    governance: str = typer.Option("SOLE_FIDUCIARY", "--governance", help="SOLE_FIDUCIARY or JOINT_COUNCIL"),
    authority: str = typer.Option("HUMAN_SOLE", "--authority", help="Authority level"),
    reference: Optional[str] = typer.Option(None, "--reference", help="Id of the object this one amends"),
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Finalize a signed commitment object and log it to the ledger."""
    config = get_config(db)
    service = open_service(config)
    try:
        async def _commit():
            finalized = service.commit(
                commitment_type=commitment_type,
                summary=summary,
                authority_level=authority,
                governance=governance,
                signatures=signer,
                reference_id=reference,
            )
            await service.flush()
            return finalized

        try:
            finalized = asyncio.run(_commit())
        except CommitmentError as e:
            console.print(f"[red]Commit rejected: {str(e)}[/]")
            raise typer.Exit(1)
        except LedgerError:
            report_halt(service.halt_reason)
            raise typer.Exit(1)

        console.print(f"[green]✓ Committed {finalized.object.id}[/]")
        console.print(f"  Hash:      {finalized.object.hash}")
        console.print(f"  Signed by: KEY-{finalized.signer_fingerprint}")
    finally:
        service.close()


@app.command()
def commitments(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """List commitment objects, newest first."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        objects = service.get_commitments()
    finally:
        service.close()

    if not objects:
        console.print("[yellow]No commitment objects recorded yet.[/]")
        return

    table = Table(title="Commitment Objects")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Authority")
    table.add_column("Signatures")
    table.add_column("Links to")
    table.add_column("Hash")
    for obj in objects:
        table.add_row(
            obj.id, obj.type, obj.authority_level, ", ".join(obj.signatures),
            obj.reference_id or "—", obj.hash[:18] + "…",
        )
    console.print(table)


@app.command()
def identity(
    reset: bool = typer.Option(False, "--reset", help="Discard the current identity and generate a new one"),
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Show (or regenerate) the local signing identity."""
    config = get_config(db)
    storage = SQLiteStorage(config.db_path)
    try:
        keypair = Keyring(Persistence(storage)).load_or_create(force_new=reset)
    finally:
        storage.close()

    console.print(f"Fingerprint: [bold]KEY-{keypair.fingerprint()}[/]")
    console.print(json.dumps(keypair.public_jwk(), indent=2))


@app.command()
def export(
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: ledger.jsonl)"),
):
    """Export the chain as JSONL, oldest first (one event per line)."""
    config = get_config(db)
    require_db(config)
    service = open_service(config)
    try:
        chain = service.ledger.oldest_first()
    finally:
        service.close()

    out_path = output or Path("ledger.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for event in chain:
            json.dump(event.to_dict(), f, separators=(",", ":"))
            f.write("\n")

    console.print(f"[green]Exported {len(chain)} events to {out_path}[/]")
    console.print("Format: JSONL — one event per line, oldest first")


@app.command()
def wipe(
    yes: bool = typer.Option(False, "--yes", help="Confirm discarding the chain"),
    db: Optional[Path] = typer.Option(None, "--db", help=DB_HELP),
):
    """Wipe ledger, commitment objects and assets, then reinitialize with a new genesis block."""
    if not yes:
        console.print("[yellow]Refusing to wipe without --yes. This discards the entire chain.[/]")
        raise typer.Exit(1)

    config = get_config(db)
    require_db(config)
    try:
        service = AuditService.open(config)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)

    try:
        state = service.wipe_and_reinitialize()
        if state is not ServiceStatus.ONLINE:
            report_halt(service.halt_reason)
            raise typer.Exit(1)
        console.print("[green]✓ Ledger wiped and reinitialized[/]")
        console.print(f"  New genesis: {service.get_chain_head()}")
    finally:
        service.close()


if __name__ == "__main__":
    app()
