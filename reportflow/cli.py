"""Typer based command line entry points for ReportFlow."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from reportflow.config import list_categories
from reportflow.core.errors import ConfigError, LoadError, RangeError, ReportFlowError, SerializationError
from reportflow.core.logger import get_logger
from reportflow.core.settings import Settings, load_settings
from reportflow.services.cleanup import run_full_cleanup
from reportflow.services.template_analyzer import (
    analyze_template,
    build_suggested_mapping,
    build_suggested_metadata,
    suggest_field,
    validate_mapping,
)
from reportflow.services.template_engine import (
    ExcelTemplate,
    TemplateFillEngine,
    generate_report_with_template,
)
from reportflow_io.mapping import (
    MappingError,
    TemplateMetadata,
    detect_mapping_conflicts,
    extract_array_mapping,
    validate_template_metadata,
)
from reportflow_io.schema import sanitize_file_name
from reportflow_persist import LocalBlobStore, StoreError, TemplateRecord, TemplateStore

EXIT_FAILED = 1
EXIT_INPUT = 2
_FATAL_ERRORS = (LoadError, RangeError, SerializationError)

app = typer.Typer(help="Analyze, map and fill spreadsheet report templates.")


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
    root: Optional[Path] = typer.Option(None, "--root", help="Data root holding store/, blobs/ and logs/."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    try:
        settings = load_settings(config, overrides={"root": root, "log_level": log_level})
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INPUT) from exc

    level_value = getattr(logging, settings.log_level.upper(), None)
    if not isinstance(level_value, int):
        raise typer.BadParameter(f"Unknown log level: {settings.log_level}")

    logger = get_logger(settings.root / "logs")
    logging.getLogger().setLevel(level_value)
    logger.setLevel(level_value)
    ctx.obj = settings


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else load_settings()


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _fail(message: str, code: int) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    return typer.Exit(code=code)


def _read_payload(path: Path) -> Any:
    """Read a JSON or YAML document."""

    try:
        with path.open("r", encoding="utf-8") as handle:
            if path.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(handle)
            return json.load(handle)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _fail(f"Unable to read {path}: {exc}", EXIT_INPUT) from exc


def _read_metadata(path: Path) -> TemplateMetadata:
    try:
        return TemplateMetadata.parse(_read_payload(path))
    except MappingError as exc:
        raise _fail(f"Invalid metadata in {path}: {exc}", EXIT_INPUT) from exc


def _check_category(category: Optional[str]) -> None:
    if category and category not in list_categories():
        known = ", ".join(list_categories())
        raise typer.BadParameter(f"Unknown category '{category}' (known: {known})")


def _print_warnings(warnings: list[Any]) -> None:
    for warning in warnings:
        typer.secho(f"warning: {warning}", fg=typer.colors.YELLOW, err=True)


@app.command("suggest")
def cli_suggest(text: str = typer.Argument(..., help="Header or label text")) -> None:
    """Print the canonical field suggested for TEXT."""

    suggestion = suggest_field(text)
    typer.echo(suggestion if suggestion else "(no suggestion)")


@app.command("analyze")
def cli_analyze(
    file: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    sheet: Optional[str] = typer.Option(None, "--sheet", help="Worksheet name (defaults to the first)"),
    category: Optional[str] = typer.Option(None, "--category", help="Also suggest a mapping for this category"),
) -> None:
    """Detect headers, static cells and the data start row of a template."""

    _check_category(category)
    try:
        analysis = analyze_template(file.read_bytes(), sheet)
    except LoadError as exc:
        raise _fail(f"Unable to analyze {file.name}: {exc}", EXIT_INPUT) from exc

    _print_warnings(list(analysis.warnings))
    payload: dict[str, Any] = {"analysis": analysis.to_dict()}
    if category:
        mapping = build_suggested_mapping(analysis, category)
        validation = validate_mapping(mapping, category)
        payload["suggestedMapping"] = mapping.to_dict()
        payload["metadata"] = build_suggested_metadata(analysis, category).to_dict()
        payload["validation"] = {
            "valid": validation.valid,
            "missingFields": validation.missing_fields,
            "warnings": validation.warnings,
        }
    _echo_json(payload)


@app.command("validate")
def cli_validate(
    metadata: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    category: Optional[str] = typer.Option(None, "--category", help="Check required table fields of this category"),
) -> None:
    """Validate a metadata document and report mapping conflicts."""

    _check_category(category)
    outcome = validate_template_metadata(_read_payload(metadata))
    if not outcome.success or outcome.data is None:
        for error in outcome.errors:
            typer.secho(f"error: {error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_INPUT)

    conflicts, warnings = detect_mapping_conflicts(outcome.data.mappings)
    _print_warnings(warnings)
    for conflict in conflicts:
        typer.secho(f"conflict: {conflict}", fg=typer.colors.RED, err=True)

    missing: list[str] = []
    if category:
        array_mapping = extract_array_mapping(outcome.data)
        if array_mapping is None:
            typer.secho("warning: no table mapping to validate", fg=typer.colors.YELLOW, err=True)
        else:
            validation = validate_mapping(array_mapping, category)
            missing = validation.missing_fields
            _print_warnings(validation.warnings)
            for field_key in missing:
                typer.secho(f"missing required field: {field_key}", fg=typer.colors.RED, err=True)

    if conflicts or missing:
        raise typer.Exit(code=EXIT_INPUT)
    typer.echo("Metadata is valid")


@app.command("inspect")
def cli_inspect(
    file: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
) -> None:
    """List every non-empty cell of every worksheet."""

    engine = TemplateFillEngine(ExcelTemplate(name=file.stem, storage_bucket="", storage_path=str(file)))
    try:
        engine.load(file.read_bytes())
    except LoadError as exc:
        raise _fail(f"Unable to inspect {file.name}: {exc}", EXIT_INPUT) from exc
    _echo_json(engine.inspect().to_dict())


@app.command("fill")
def cli_fill(
    template: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    metadata: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    data: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    out: Path = typer.Option(..., "--out", "-o", help="Output workbook path", resolve_path=True),
    mappings: Optional[str] = typer.Option(None, "--mappings", help="JSON object of mapping overrides"),
) -> None:
    """Fill a local template file with DATA following METADATA."""

    logger = get_logger()
    custom: Optional[dict[str, Any]] = None
    if mappings:
        try:
            custom = json.loads(mappings)
        except ValueError as exc:
            raise typer.BadParameter(f"--mappings is not valid JSON: {exc}") from exc
        if not isinstance(custom, dict):
            raise typer.BadParameter("--mappings must be a JSON object")

    source = ExcelTemplate(
        name=template.stem,
        storage_bucket="",
        storage_path=str(template),
        metadata=_read_metadata(metadata),
    )
    payload = _read_payload(data)
    if not isinstance(payload, dict):
        raise _fail(f"{data} must contain an object", EXIT_INPUT)

    try:
        engine = TemplateFillEngine(source)
        engine.load(template.read_bytes())
        warnings = engine.fill(payload, custom)
        content = engine.generate()
    except MappingError as exc:
        raise _fail(f"Invalid mappings: {exc}", EXIT_INPUT) from exc
    except _FATAL_ERRORS as exc:
        logger.error("Report generation failed for %s: %s", template.name, exc)
        raise _fail(f"Report generation failed: {exc}", EXIT_FAILED) from exc

    _print_warnings(warnings)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(content)
    typer.echo(f"Report written: {out}")


@app.command("register")
def cli_register(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    name: str = typer.Option(..., "--name", help="Display name"),
    category: str = typer.Option(..., "--category", help="Report category"),
    metadata: Optional[Path] = typer.Option(
        None, "--metadata", exists=True, readable=True, dir_okay=False, resolve_path=True,
        help="Metadata JSON/YAML (suggested automatically when omitted)",
    ),
    description: str = typer.Option("", "--description"),
    created_by: str = typer.Option("", "--created-by"),
    inactive: bool = typer.Option(False, "--inactive", help="Register without activating"),
) -> None:
    """Upload a template into the blob store and record it in the registry."""

    _check_category(category)
    settings = _settings(ctx)
    document = file.read_bytes()

    if metadata is not None:
        outcome = validate_template_metadata(_read_payload(metadata))
        if not outcome.success or outcome.data is None:
            raise _fail("Invalid metadata: " + "; ".join(outcome.errors), EXIT_INPUT)
        template_metadata = outcome.data
    else:
        try:
            analysis = analyze_template(document)
        except LoadError as exc:
            raise _fail(f"Unable to analyze {file.name}: {exc}", EXIT_INPUT) from exc
        template_metadata = build_suggested_metadata(analysis, category)

    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    storage_path = f"{category}/{stamp}_{sanitize_file_name(file.name)}"
    try:
        blob_store = LocalBlobStore(settings.root)
        blob_store.upload(settings.templates_bucket, storage_path, document, overwrite=False)
        record = TemplateStore(settings.root).upsert(
            TemplateRecord(
                name=name,
                description=description,
                category=category,
                storage_bucket=settings.templates_bucket,
                storage_path=storage_path,
                metadata=template_metadata,
                is_active=not inactive,
                created_by=created_by,
            )
        )
    except StoreError as exc:
        raise _fail(f"Unable to register template: {exc}", EXIT_FAILED) from exc

    typer.echo(f"Template registered: {record.id} ({settings.templates_bucket}/{storage_path})")


@app.command("generate")
def cli_generate(
    ctx: typer.Context,
    category: str = typer.Argument(..., help="Report category"),
    data: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, resolve_path=True),
    out: Path = typer.Option(..., "--out", "-o", help="Output workbook path", resolve_path=True),
    template_id: Optional[str] = typer.Option(None, "--template-id", help="Use this template instead of the active one"),
) -> None:
    """Fill the active (or given) registered template of CATEGORY with DATA."""

    logger = get_logger()
    settings = _settings(ctx)
    payload = _read_payload(data)
    if not isinstance(payload, dict):
        raise _fail(f"{data} must contain an object", EXIT_INPUT)

    try:
        report = generate_report_with_template(
            category,
            payload,
            LocalBlobStore(settings.root),
            TemplateStore(settings.root),
            template_id=template_id,
        )
    except (ReportFlowError, StoreError) as exc:
        logger.error("Report generation failed for category %s: %s", category, exc)
        raise _fail(f"Report generation failed: {exc}", EXIT_FAILED) from exc

    if report is None:
        raise _fail(f"No template found for category '{category}'", EXIT_FAILED)
    _print_warnings(report.warnings)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(report.content)
    typer.echo(f"Report written: {out}")


@app.command("cleanup")
def cli_cleanup(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Only report what would be deleted"),
) -> None:
    """Remove orphaned template files and expired inactive templates."""

    settings = _settings(ctx)
    outcome = run_full_cleanup(
        LocalBlobStore(settings.root),
        TemplateStore(settings.root),
        settings.templates_bucket,
        min_age=timedelta(hours=settings.orphan_min_age_hours),
        retention_days=settings.inactive_retention_days,
        dry_run=dry_run,
    )
    prefix = "Would delete" if dry_run else "Deleted"
    typer.echo(f"{prefix} orphaned files: {len(outcome.orphaned.orphaned_files)}")
    typer.echo(f"{prefix} inactive templates: {len(outcome.inactive.deleted_records)}")
    typer.echo(f"Files removed: {outcome.deleted_files}")
    for error in outcome.errors:
        typer.secho(f"error: {error}", fg=typer.colors.RED, err=True)
    if outcome.errors:
        raise typer.Exit(code=EXIT_FAILED)


if __name__ == "__main__":
    app()
