"""Command line interface for assetlink."""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict, List, Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table, box

from assetlink import get_version
from assetlink.cache import CacheIndex
from assetlink.config import Config, load_config
from assetlink.core import BuildResult, build_engine
from assetlink.errors import AssetIOError, RegistryError, ScanError
from assetlink.logging import LOG_FILENAME, configure_logging
from assetlink.manifest import AssetManifestEntry, ClassListRecord, decode_records
from assetlink.reports import write_build_report, write_manifest
from assetlink.scanner import scan_path

MANIFEST_FILENAME = "manifest.json"
REPORT_FILENAME = "build-report.md"

EXIT_ASSET_FAILURES = 1
EXIT_COLLECTION_FAILED = 2


def _load_environment(env_file: Optional[pathlib.Path]) -> None:
    """Load environment variables from .env files."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    else:
        load_dotenv(override=False)


def _prepare_logging(
    config: Config,
    override_path: Optional[pathlib.Path],
    override_level: Optional[str],
) -> tuple[logging.Logger, pathlib.Path]:
    """Configure logging based on configuration and overrides."""

    configured_path = override_path or config.logging.path
    configured_level = (override_level or config.logging.level).upper()
    logger = configure_logging(
        log_path=configured_path,
        level=configured_level,
        mirror_to_console=False,
    )
    file_handler = next((h for h in logger.handlers if hasattr(h, "baseFilename")), None)
    if file_handler is not None:
        return logger, pathlib.Path(file_handler.baseFilename)
    return logger, pathlib.Path.cwd() / LOG_FILENAME


app = typer.Typer(
    name="assetlink",
    help="Collect assets declared inside compiled artifacts and optimize them.",
    no_args_is_help=True,
    add_completion=False,
)

config_app = typer.Typer(help="Configuration utilities.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    """Print the package version and exit when requested."""

    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[pathlib.Path] = typer.Option(
        None,
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (used exclusively).",
    ),
    env_file: Optional[pathlib.Path] = typer.Option(
        None,
        "--env-file",
        metavar="PATH",
        help="Load environment variables from .env-style file before execution.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level (debug, info, warn, error).",
    ),
    log_path: Optional[pathlib.Path] = typer.Option(
        None,
        "--log-path",
        metavar="PATH",
        help="Override the base directory or file for log output.",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show assetlink version and exit.",
    ),
) -> None:
    """CLI root; loads configuration, logging, and shared context."""

    ctx.ensure_object(dict)
    _load_environment(env_file)

    try:
        config_obj = load_config(config)
    except (FileNotFoundError, TypeError, ValueError) as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=EXIT_COLLECTION_FAILED) from exc

    logger, log_file = _prepare_logging(config_obj, log_path, log_level)
    ctx.obj.update(
        {
            "config": config_obj,
            "config_path": config,
            "log_file": log_file,
            "logger": logger,
        }
    )


@app.command()
def collect(
    ctx: typer.Context,
    artifacts: List[pathlib.Path] = typer.Argument(
        ...,
        metavar="ARTIFACT...",
        help="Compiled artifacts (executables, objects, static libraries, wasm modules).",
    ),
    out: Optional[pathlib.Path] = typer.Option(
        None,
        "--out",
        metavar="DIR",
        help="Output directory for optimized assets.",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        min=1,
        help="Number of concurrent transform workers.",
    ),
    manifest: Optional[pathlib.Path] = typer.Option(
        None,
        "--manifest",
        metavar="PATH",
        help="Where to write the JSON manifest (defaults to <out>/manifest.json).",
    ),
    best_effort: bool = typer.Option(
        False,
        "--best-effort",
        help="Skip artifacts that cannot be scanned instead of aborting.",
    ),
) -> None:
    """Scan artifacts, optimize every declared asset and write the manifest."""

    config: Config = ctx.obj["config"]
    logger: logging.Logger = ctx.obj["logger"]

    overrides: Dict[str, Any] = {}
    if out is not None:
        overrides["output_dir"] = str(out)
    if workers is not None:
        overrides["workers"] = workers
    if best_effort:
        overrides["best_effort_scan"] = True
    if manifest is not None:
        overrides["manifest_path"] = str(manifest)
    if overrides:
        config = config.with_overrides({"build": overrides})

    engine = build_engine(config, logger=logger)
    try:
        result = engine.run_sync(artifacts)
    except (ScanError, RegistryError, AssetIOError) as exc:
        typer.echo(f"Collection failed [{exc.kind}]: {exc}", err=True)
        raise typer.Exit(code=EXIT_COLLECTION_FAILED) from exc

    output_dir = config.build.output_dir
    manifest_path = config.build.manifest_path or output_dir / MANIFEST_FILENAME
    report_path = output_dir / REPORT_FILENAME
    write_manifest(result, manifest_path)
    write_build_report(result, report_path)

    _print_summary(result)
    typer.echo(f"Manifest: {manifest_path}")
    typer.echo(f"Report: {report_path}")
    typer.echo(f"Log: {ctx.obj['log_file']}")

    if not result.ok:
        raise typer.Exit(code=EXIT_ASSET_FAILURES)


@app.command()
def inspect(
    artifact: pathlib.Path = typer.Argument(..., metavar="ARTIFACT", help="Artifact to decode."),
) -> None:
    """List the manifest records embedded in one artifact."""

    try:
        records = decode_records(scan_path(artifact))
    except (ScanError, AssetIOError) as exc:
        typer.echo(f"Unable to inspect {artifact} [{exc.kind}]: {exc}", err=True)
        raise typer.Exit(code=EXIT_COLLECTION_FAILED) from exc

    entries = [record for record in records if isinstance(record, AssetManifestEntry)]
    if not records:
        typer.echo(f"{artifact}: no asset manifest found.")
        return

    table = Table(box=box.SIMPLE, title=str(artifact))
    table.add_column("Identifier", no_wrap=True)
    table.add_column("Kind")
    table.add_column("Locator")
    table.add_column("Options")
    for entry in entries:
        options = entry.options.model_dump(mode="json", exclude_defaults=True)
        table.add_row(
            entry.identifier[:16],
            entry.kind.value,
            entry.locator.value,
            json.dumps(options, sort_keys=True) if options else "",
        )
    Console().print(table)

    for record in records:
        if isinstance(record, ClassListRecord):
            typer.echo(f"classes: {' '.join(sorted(record.classes))}")
        elif not isinstance(record, AssetManifestEntry):
            typer.echo(f"metadata: {record.key}={record.value}")
    typer.echo(f"{len(entries)} asset request(s) in {artifact}")


@app.command()
def history(
    ctx: typer.Context,
    out: Optional[pathlib.Path] = typer.Option(
        None,
        "--out",
        metavar="DIR",
        help="Output directory whose cache index should be read.",
    ),
    limit: int = typer.Option(5, "--limit", min=1, help="Number of recent builds to list."),
) -> None:
    """Show recent builds recorded in the cache index."""

    config: Config = ctx.obj["config"]
    if out is not None:
        config = config.with_overrides({"build": {"output_dir": str(out)}})
    index_path = config.index_path()
    if not index_path.exists():
        typer.echo(f"No build history at {index_path}.")
        return

    index = CacheIndex(index_path)
    runs = index.list_recent_runs(limit)
    table = Table(box=box.SIMPLE, title="Recent builds")
    table.add_column("Run", justify="right")
    table.add_column("Started", no_wrap=True)
    table.add_column("Status")
    table.add_column("Artifacts", justify="right")
    table.add_column("Transformed", justify="right")
    table.add_column("Cached", justify="right")
    table.add_column("Failed", justify="right")
    for run in runs:
        table.add_row(
            str(run.id),
            run.started_at,
            run.status,
            str(run.artifacts),
            str(run.stats.get("transformed", "-")),
            str(run.stats.get("cached", "-")),
            str(run.stats.get("failed", "-")),
        )
    Console().print(table)
    typer.echo(f"{index.count_outputs()} output(s) indexed in {index_path}")


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    format: str = typer.Option(
        "yaml",
        "--format",
        help="Output format (yaml or json).",
    ),
) -> None:
    """Show the effective configuration for this invocation."""

    config: Config = ctx.obj["config"]

    normalized_format = format.strip().lower()
    if normalized_format not in {"yaml", "json"}:
        raise typer.BadParameter("Format must be 'yaml' or 'json'.", param_hint="--format")

    if config.loaded_from:
        typer.echo("Loaded configuration from:", err=True)
        for entry in config.loaded_from:
            typer.echo(f"- {entry}", err=True)

    data = config.model_dump()
    if normalized_format == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(dict(data), sort_keys=False))


@app.command()
def version() -> None:
    """Show the installed assetlink version."""

    typer.echo(get_version())


def _print_summary(result: BuildResult) -> None:
    stats = result.stats
    table = Table(box=box.SIMPLE, title="assetlink build")
    table.add_column("Locator")
    table.add_column("Output", no_wrap=True)
    table.add_column("Status")
    for asset in result.assets:
        table.add_row(asset.locator, asset.output_path, "cached" if asset.cached else "built")
    for failure in result.failures:
        table.add_row(failure.locator, "-", f"{failure.kind}: {failure.message}")
    Console().print(table)
    typer.echo(
        f"Built {len(result.assets)} asset(s): {stats.transformed} transformed, "
        f"{stats.cached} cached, {stats.failed} failed."
    )
    if result.skipped_artifacts:
        typer.echo(f"Skipped {len(result.skipped_artifacts)} artifact(s).", err=True)
    if result.io_alert:
        typer.echo("Repeated I/O failures detected; see the log for details.", err=True)
