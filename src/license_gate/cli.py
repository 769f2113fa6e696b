"""Command-line interface for license_gate.

Provides commands to inspect a remote feed through the mirror client and to
check packages against the license block policy.
"""

import asyncio
import dataclasses
import logging
import shutil
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from license_gate.config import DEFAULT_CONFIG_NAME, Settings, load_settings
from license_gate.policy import LicensePolicy, MirrorPolicyConfig
from license_gate.upstream import V3UpstreamClient
from license_gate.versioning import NuGetVersion

app = typer.Typer(
    name="license-gate",
    help="License-aware mirror client for NuGet V3 package feeds.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("license_gate")

SourceOption = Annotated[
    Optional[str],
    typer.Option(
        "--source",
        "-s",
        envvar="LICENSE_GATE_SOURCE",
        help="Service index URL of the remote feed (overrides the config file)",
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        envvar="LICENSE_GATE_CONFIG",
        help="Path to a configuration file (defaults to ./license-gate.toml if present)",
        exists=True,
        readable=True,
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
]


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("license_gate").setLevel(level)


def _load(config: Optional[Path], source: Optional[str]) -> Settings:
    """Load settings from the config file, applying the --source override.

    Without --config, a license-gate.toml in the working directory is used
    if there is one.

    Raises:
        typer.Exit: If the configuration file is invalid.
    """
    if config is None and Path(DEFAULT_CONFIG_NAME).is_file():
        config = Path(DEFAULT_CONFIG_NAME)

    try:
        settings = load_settings(config) if config else Settings()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if source:
        settings = dataclasses.replace(
            settings,
            upstream=dataclasses.replace(settings.upstream, service_index=source),
        )
    return settings


def _client(settings: Settings) -> V3UpstreamClient:
    return V3UpstreamClient(
        service_index_url=settings.upstream.service_index,
        timeout=settings.upstream.timeout,
    )


def _parse_version(version: str) -> NuGetVersion:
    parsed = NuGetVersion.try_parse(version)
    if parsed is None:
        err_console.print(f"[red]Error:[/red] Invalid version: {version}")
        raise typer.Exit(code=1)
    return parsed


async def _run_versions(settings: Settings, package_id: str) -> int:
    async with _client(settings) as client:
        versions = await client.list_versions(package_id)

    if not versions:
        console.print(f"[yellow]No versions found for {package_id}[/yellow]")
        return 1

    for version in versions:
        console.print(version.to_full_string())
    return 0


async def _run_metadata(settings: Settings, package_id: str) -> int:
    async with _client(settings) as client:
        records = await client.list_metadata(package_id)

    if not records:
        console.print(f"[yellow]No metadata found for {package_id}[/yellow]")
        return 1

    table = Table(title=f"{records[0].id} ({len(records)} versions)")
    table.add_column("Version")
    table.add_column("Listed")
    table.add_column("Published")
    table.add_column("Authors")
    table.add_column("License URL")

    for record in records:
        table.add_row(
            record.version.to_full_string(),
            "yes" if record.listed else "no",
            record.published.date().isoformat() if record.published else "-",
            ", ".join(record.authors) or "-",
            record.license_url or "-",
        )

    console.print(table)
    return 0


async def _run_license(settings: Settings, package_id: str, version: NuGetVersion) -> int:
    async with _client(settings) as client:
        info = await client.get_license_info(package_id, version)

    if info is None:
        console.print(f"[yellow]No license information for {package_id} {version}[/yellow]")
        return 1

    console.print(f"[bold]{package_id} {version}[/bold]")
    console.print(f"License URL:        {info.license_url or '-'}")
    console.print(f"License expression: {info.license_expression or '-'}")
    if info.license_keys:
        console.print(f"License keys:       {', '.join(info.license_keys)}")
    return 0


async def _run_check(
    settings: Settings,
    package_id: str,
    version: NuGetVersion,
) -> int:
    if not settings.policy.is_enabled:
        console.print("[yellow]No block lists configured, every package is allowed[/yellow]")

    async with _client(settings) as client:
        decision = await LicensePolicy(client, settings.policy).evaluate(package_id, version)

    if decision.blocked:
        console.print(f"[red]Blocked:[/red] {decision.reason}")
        return 1

    console.print(f"[green]Allowed:[/green] {package_id} {version}")
    return 0


async def _run_download(
    settings: Settings,
    package_id: str,
    version: NuGetVersion,
    output: Path,
    manifest: bool,
) -> int:
    async with _client(settings) as client:
        if manifest:
            content = await client.download_manifest(package_id, version)
        else:
            content = await client.download_content(package_id, version)

    if content is None:
        err_console.print(f"[red]Error:[/red] Could not download {package_id} {version}")
        return 1

    with content, open(output, "wb") as f:
        shutil.copyfileobj(content, f)

    console.print(f"[green]Downloaded:[/green] {output}")
    return 0


@app.command()
def versions(
    package_id: Annotated[str, typer.Argument(help="Package id")],
    source: SourceOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """List all versions of a package on the remote feed, unlisted included."""
    _setup_logging(verbose)
    settings = _load(config, source)
    raise typer.Exit(code=asyncio.run(_run_versions(settings, package_id)))


@app.command()
def metadata(
    package_id: Annotated[str, typer.Argument(help="Package id")],
    source: SourceOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show the translated metadata of every version of a package."""
    _setup_logging(verbose)
    settings = _load(config, source)
    raise typer.Exit(code=asyncio.run(_run_metadata(settings, package_id)))


@app.command("license")
def license_info(
    package_id: Annotated[str, typer.Argument(help="Package id")],
    version: Annotated[str, typer.Argument(help="Package version")],
    source: SourceOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Show the license URL and license expression of a package version."""
    _setup_logging(verbose)
    settings = _load(config, source)
    parsed = _parse_version(version)
    raise typer.Exit(code=asyncio.run(_run_license(settings, package_id, parsed)))


@app.command()
def check(
    package_id: Annotated[str, typer.Argument(help="Package id")],
    version: Annotated[str, typer.Argument(help="Package version")],
    block_license: Annotated[
        Optional[list[str]],
        typer.Option(
            "--block-license",
            "-l",
            help="License expression fragment to block (repeatable)",
        ),
    ] = None,
    block_url: Annotated[
        Optional[list[str]],
        typer.Option(
            "--block-url",
            "-u",
            help="License URL pattern to block, '*' is a wildcard (repeatable)",
        ),
    ] = None,
    source: SourceOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Check a package version against the license block lists.

    Block lists from the configuration file are extended with the ones given
    on the command line.

    Exit codes:
        0 - Package allowed
        1 - Package blocked or error occurred
    """
    _setup_logging(verbose)
    settings = _load(config, source)
    parsed = _parse_version(version)

    policy = MirrorPolicyConfig(
        blocked_license_expressions=(
            settings.policy.blocked_license_expressions + tuple(block_license or ())
        ),
        blocked_license_url_patterns=(
            settings.policy.blocked_license_url_patterns + tuple(block_url or ())
        ),
    )
    settings = dataclasses.replace(settings, policy=policy)

    raise typer.Exit(code=asyncio.run(_run_check(settings, package_id, parsed)))


@app.command()
def download(
    package_id: Annotated[str, typer.Argument(help="Package id")],
    version: Annotated[str, typer.Argument(help="Package version")],
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Output file path (defaults to the feed's file name)",
        ),
    ] = None,
    manifest: Annotated[
        bool,
        typer.Option(
            "--manifest",
            help="Download the .nuspec manifest instead of the package",
        ),
    ] = False,
    source: SourceOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Download a package archive (or its manifest) from the remote feed."""
    _setup_logging(verbose)
    settings = _load(config, source)
    parsed = _parse_version(version)

    if output is None:
        lower_id = package_id.lower()
        if manifest:
            output = Path(f"{lower_id}.nuspec")
        else:
            output = Path(f"{lower_id}.{parsed.to_normalized_string().lower()}.nupkg")

    raise typer.Exit(
        code=asyncio.run(_run_download(settings, package_id, parsed, output, manifest))
    )


if __name__ == "__main__":
    app()
