"""
Command-line interface for KILT Verifier.

Usage:
    kilt-verify credential.json
    kilt-verify https://example.com/credentials/123
    cat credential.json | kilt-verify -
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kilt_verifier.config import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT, DEFAULT_TRUSTED_ISSUERS
from kilt_verifier.credential import Credential
from kilt_verifier.errors import CredentialFormatError
from kilt_verifier.verifier import (
    CredentialVerifier,
    VerificationResult,
    VerificationStage,
    VerificationStatus,
)


console = Console()

STAGE_ROWS = [
    ("Claim Contents", VerificationStage.CONTENT_CHECKED, "contents"),
    ("Root Hash", VerificationStage.ROOT_HASH_CHECKED, "root_hash"),
    ("Signature", VerificationStage.SIGNATURE_CHECKED, "signature"),
    ("Attestation", VerificationStage.ATTESTATION_CHECKED, "attestation"),
]

_STAGE_ORDER = list(VerificationStage)


def stage_outcomes(result: VerificationResult) -> dict[str, str]:
    """Map each check to passed / failed / skipped / not run."""
    outcomes: dict[str, str] = {}
    reached = _STAGE_ORDER.index(result.stage)
    for _, stage, name in STAGE_ROWS:
        position = _STAGE_ORDER.index(stage)
        if name in result.skipped:
            outcomes[name] = "skipped"
        elif position <= reached:
            outcomes[name] = "passed"
        elif position == reached + 1 and result.error is not None:
            outcomes[name] = "failed"
        else:
            outcomes[name] = "not run"
    return outcomes


def format_result(result: VerificationResult) -> None:
    """Format and print verification result."""
    if result.status == VerificationStatus.VALID and result.is_valid:
        status_icon = "[bold green]VALID[/]"
        panel_style = "green"
    elif result.status == VerificationStatus.UNVERIFIED:
        status_icon = "[bold blue]LOCAL CHECKS PASSED[/] [dim](not verified on chain)[/]"
        panel_style = "blue"
    elif result.status == VerificationStatus.INVALID:
        status_icon = "[bold red]INVALID[/]"
        panel_style = "red"
    else:
        status_icon = "[bold yellow]ERROR[/]"
        panel_style = "yellow"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Status", status_icon)

    if result.owner:
        table.add_row("Owner", result.owner)

    if result.root_hash:
        table.add_row("Root Hash", result.root_hash)

    styles = {
        "passed": "[green]Passed[/]",
        "failed": "[red]Failed[/]",
        "skipped": "[dim]Skipped[/]",
        "not run": "[dim]Not run[/]",
    }
    outcomes = stage_outcomes(result)
    for label, _, name in STAGE_ROWS:
        table.add_row(label, styles[outcomes[name]])

    console.print(Panel(table, title="Verification Result", border_style=panel_style))

    if result.error:
        console.print(f"\n[bold red]Error:[/] {result.error}")


def result_to_dict(result: VerificationResult) -> dict[str, Any]:
    return {
        "status": result.status.value,
        "valid": result.is_valid,
        "stage": result.stage.value,
        "owner": result.owner,
        "root_hash": result.root_hash,
        "checks": stage_outcomes(result),
        "error": {
            "code": result.error.code,
            "message": str(result.error),
        } if result.error else None,
    }


def load_credential(source: str, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """Load credential from file, URL, or stdin.

    Args:
        source: File path, URL, or "-" for stdin.
        timeout: HTTP request timeout in seconds.

    Returns:
        Parsed credential JSON.
    """
    if source == "-":
        content = sys.stdin.read()
        return json.loads(content)

    if source.startswith("http://") or source.startswith("https://"):
        with httpx.Client(timeout=timeout) as client:
            response = client.get(source, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")

    with path.open(encoding="utf-8") as f:
        return json.load(f)


def setup_logging(verbose: bool) -> None:
    """Send library logs to stderr through rich when --verbose is set."""
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    for noisy_logger in ["httpx", "httpcore", "websocket", "substrateinterface"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


async def run_verification(
    credential: Credential,
    endpoint: str,
    trusted_issuers: tuple[str, ...],
    offline: bool,
    timeout: float,
) -> VerificationResult:
    if offline:
        return await CredentialVerifier(offline=True).verify(credential)

    from kilt_verifier.kilt import KiltChainResolver

    ledger = KiltChainResolver(url=endpoint, timeout=timeout)
    try:
        verifier = CredentialVerifier(ledger=ledger, allowed_issuers=trusted_issuers)
        return await verifier.verify(credential)
    finally:
        ledger.close()


def _fail(message: str, json_output: bool) -> None:
    if json_output:
        console.print_json(data={"error": message})
    else:
        console.print(f"[red]Error:[/] {message}")
    sys.exit(2)


@click.command()
@click.argument("source", required=True)
@click.option(
    "--endpoint",
    default=DEFAULT_ENDPOINT,
    show_default=True,
    envvar="KILT_ENDPOINT",
    help="Websocket endpoint of a KILT node",
)
@click.option(
    "--trusted-issuer",
    "trusted_issuers",
    multiple=True,
    envvar="KILT_TRUSTED_ISSUERS",
    help="DID of a trusted attester (repeatable). Defaults to socialkyc.io",
)
@click.option(
    "--offline",
    is_flag=True,
    help="Only check claim contents and root hash, without querying the chain",
)
@click.option(
    "--json-output",
    is_flag=True,
    help="Output result as JSON",
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    help="Network timeout in seconds",
)
@click.option("-v", "--verbose", is_flag=True, help="Log verification steps to stderr")
@click.version_option(package_name="kilt-verifier")
def main(
    source: str,
    endpoint: str,
    trusted_issuers: tuple[str, ...],
    offline: bool,
    json_output: bool,
    timeout: float,
    verbose: bool,
) -> None:
    """Verify a KILT credential.

    SOURCE can be:
    - A file path (e.g., credential.json)
    - A URL (e.g., https://example.com/credentials/123)
    - "-" to read from stdin

    Examples:

        kilt-verify credential.json

        kilt-verify --offline credential.json

        cat credential.json | kilt-verify --trusted-issuer did:kilt:4pnf... -

    Exit codes: 0 valid, 1 invalid, 2 input or ledger error, 3 local checks
    passed with --offline (the credential is not verified).
    """
    setup_logging(verbose)

    try:
        credential = Credential.from_dict(load_credential(source, timeout=timeout))
    except click.ClickException as e:
        _fail(e.message, json_output)
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON: {e}", json_output)
    except UnicodeDecodeError as e:
        _fail(f"Invalid encoding: {e}", json_output)
    except OSError as e:
        _fail(f"Could not read {source}: {e}", json_output)
    except httpx.HTTPError as e:
        _fail(f"HTTP error: {e}", json_output)
    except CredentialFormatError as e:
        _fail(f"Invalid credential: {e}", json_output)

    result = asyncio.run(
        run_verification(
            credential,
            endpoint=endpoint,
            trusted_issuers=trusted_issuers or DEFAULT_TRUSTED_ISSUERS,
            offline=offline,
            timeout=timeout,
        )
    )

    if json_output:
        console.print_json(data=result_to_dict(result))
    else:
        format_result(result)

    if result.status == VerificationStatus.ERROR:
        sys.exit(2)
    if result.status == VerificationStatus.UNVERIFIED:
        sys.exit(3)
    sys.exit(0 if result.is_valid else 1)


if __name__ == "__main__":
    main()
