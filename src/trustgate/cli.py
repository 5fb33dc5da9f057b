"""
CLI entry point for trustgate.

Operator tooling around the gate: compute digests, check fragments against
the configured trust sources, and edit the trust configuration.

Commands:
    digest       Print the SHA-256 digest of a fragment
    check        Decide whether a fragment would be allowed to run
    list         List effective trusted digests
    trust        Add a manually trusted digest
    untrust      Remove a manually trusted digest
    add-note     Add a trust note source
    remove-note  Remove a trust note source
    add-file     Add an external trust file source
    remove-file  Remove an external trust file source

Architecture Note:
    The CLI only parses arguments and delegates to the trust store and
    policy modules, the same code the gate runs inside the host.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from trustgate import __version__
from trustgate.documents import FilesystemDocumentStore
from trustgate.errors import SettingsError
from trustgate.hashing import digest as compute_digest
from trustgate.hashing import normalize_entry
from trustgate.policy import decide
from trustgate.schema import GateSettings, TrustSnapshot, load_settings, save_settings
from trustgate.trust import TrustStore

app = typer.Typer(
    name="trustgate",
    help="Gate embedded script execution on a hash allow-list.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DEFAULT_SETTINGS = Path("trustgate.yaml")

SettingsOption = Annotated[
    Path,
    typer.Option(
        "--settings",
        "-s",
        help="Path to the settings YAML file.",
        resolve_path=True,
    ),
]
VaultOption = Annotated[
    Optional[Path],
    typer.Option(
        "--vault",
        help="Vault directory that trust note references are relative to.",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]trustgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Enable debug logging.",
        ),
    ] = False,
) -> None:
    """
    trustgate - Hash allow-list gate for embedded script execution.

    Only fragments whose exact content hash is trusted may run.
    """
    setup_logging(verbose)


def setup_logging(verbose: bool = False) -> None:
    """Route trustgate's log records to stderr through Rich."""
    package_logger = logging.getLogger("trustgate")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def _read_fragment(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _load(settings_path: Path) -> GateSettings:
    try:
        return load_settings(settings_path, missing_ok=True)
    except SettingsError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=2)


def _refreshed_snapshot(settings: GateSettings, vault: Path | None) -> TrustSnapshot:
    documents = FilesystemDocumentStore(vault or Path.cwd())
    store = TrustStore.from_settings(settings, documents)
    return asyncio.run(store.refresh())


@app.command()
def digest(
    path: Annotated[
        Path,
        typer.Argument(help="Fragment file, or '-' for stdin."),
    ],
) -> None:
    """
    Print the SHA-256 digest of a fragment.

    Example:
        $ trustgate digest snippet.js
    """
    try:
        content = _read_fragment(path)
    except OSError as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(code=2)
    print(compute_digest(content))


@app.command()
def check(
    path: Annotated[
        Path,
        typer.Argument(help="Fragment file, or '-' for stdin."),
    ],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
    vault: VaultOption = None,
    integration: Annotated[
        str,
        typer.Option(
            "--integration",
            "-i",
            help="Integration the fragment would run under (for override flags).",
        ),
    ] = "",
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output the decision in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Decide whether a fragment would be allowed to run.

    Exits 0 when allowed, 1 when denied.

    Example:
        $ trustgate check snippet.js --settings trustgate.yaml -i dataviewjs
    """
    try:
        content = _read_fragment(path)
    except OSError as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(code=2)

    settings = _load(settings_path)
    snapshot = _refreshed_snapshot(settings, vault)
    decision = decide(content, settings.flags, snapshot, integration)

    if json_output:
        print(json.dumps(decision.model_dump(mode="json") | {"verdict": decision.verdict.value}, indent=2))
    elif decision.allowed:
        console.print(f"[green]✓ allow[/green] {decision.digest}")
        console.print(f"[dim]{decision.reason} ({decision.rule_matched})[/dim]")
    else:
        console.print(f"[red]✗ deny[/red] {decision.digest}")
        console.print(f"[dim]{decision.reason}[/dim]")

    raise typer.Exit(code=0 if decision.allowed else 1)


@app.command("list")
def list_trusted(
    settings_path: SettingsOption = DEFAULT_SETTINGS,
    vault: VaultOption = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output in JSON format.",
        ),
    ] = False,
) -> None:
    """
    List effective trusted digests from every configured source.

    Example:
        $ trustgate list --settings trustgate.yaml --vault ~/notes
    """
    settings = _load(settings_path)
    snapshot = _refreshed_snapshot(settings, vault)
    entries = sorted(snapshot.entries)

    if json_output:
        print(json.dumps({
            "trusted_hashes": entries,
            "failed_sources": list(snapshot.failed_sources),
            "allow_untrusted_code": settings.allow_untrusted_code,
            "integration_overrides": settings.integration_overrides,
        }, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Trusted hash", style="cyan")
    for index, entry in enumerate(entries, start=1):
        table.add_row(str(index), entry)
    console.print(table)

    for source in snapshot.failed_sources:
        console.print(f"[yellow]⊘ Unavailable source: {source}[/yellow]")
    if settings.allow_untrusted_code:
        console.print("[red]Warning: allow_untrusted_code is enabled, every fragment runs[/red]")
    for name, enabled in settings.integration_overrides.items():
        if enabled:
            console.print(f"[yellow]Warning: security bypassed for {name}[/yellow]")


def _edit_list(settings_path: Path, field: str, value: str, add: bool) -> None:
    settings = _load(settings_path)
    current = list(getattr(settings, field))
    if add:
        if value in current:
            console.print(f"[dim]Already present: {value}[/dim]")
            return
        current.append(value)
    else:
        if value not in current:
            console.print(f"[yellow]Not present: {value}[/yellow]")
            raise typer.Exit(code=1)
        current.remove(value)

    save_settings(settings.model_copy(update={field: current}), settings_path)
    verb = "Added" if add else "Removed"
    console.print(f"[green]✓[/green] {verb} {value}")


@app.command()
def trust(
    value: Annotated[str, typer.Argument(help="Digest to trust.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Add a manually trusted digest."""
    _edit_list(settings_path, "trusted_hashes", normalize_entry(value), add=True)


@app.command()
def untrust(
    value: Annotated[str, typer.Argument(help="Digest to stop trusting.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Remove a manually trusted digest."""
    _edit_list(settings_path, "trusted_hashes", normalize_entry(value), add=False)


@app.command("add-note")
def add_note(
    reference: Annotated[str, typer.Argument(help="Vault-relative note path.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Add a note listing trusted digests."""
    _edit_list(settings_path, "trusted_hash_notes", reference, add=True)


@app.command("remove-note")
def remove_note(
    reference: Annotated[str, typer.Argument(help="Vault-relative note path.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Remove a trust note."""
    _edit_list(settings_path, "trusted_hash_notes", reference, add=False)


@app.command("add-file")
def add_file(
    path: Annotated[str, typer.Argument(help="Path to a file listing trusted digests.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Add an external file listing trusted digests."""
    _edit_list(settings_path, "trusted_hash_files", path, add=True)


@app.command("remove-file")
def remove_file(
    path: Annotated[str, typer.Argument(help="Path to a file listing trusted digests.")],
    settings_path: SettingsOption = DEFAULT_SETTINGS,
) -> None:
    """Remove an external trust file."""
    _edit_list(settings_path, "trusted_hash_files", path, add=False)


if __name__ == "__main__":
    app()
