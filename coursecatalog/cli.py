"""
Command line entry point: ``python -m coursecatalog import --dry-run``.
"""
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Tuple

import click

from coursecatalog.core.config import settings
from coursecatalog.services.audit import list_audit_logs
from coursecatalog.services.catalog_export import export_catalog
from coursecatalog.services.catalog_import import run_catalog_import


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation.")
def catalog(log_level):
    """Course catalog snapshot tools."""
    logging.basicConfig(
        level=getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@catalog.command("import")
@click.option("--dry-run", is_flag=True, help="Load and validate only; write nothing.")
@click.option(
    "--snapshot",
    "snapshots",
    multiple=True,
    type=click.Path(path_type=Path),
    help="Candidate snapshot file (repeatable); defaults to CATALOG_SNAPSHOT_PATHS.",
)
def import_command(dry_run: bool, snapshots: Tuple[Path, ...]):
    """Import the catalog snapshot into the database."""
    result = asyncio.run(run_catalog_import(dry_run=dry_run, snapshot_paths=list(snapshots) or None))

    click.echo(f"Catalog import {'succeeded' if result.success else 'FAILED'}"
               f"{' (dry run)' if result.dry_run else ''} in {result.duration_ms}ms")
    if result.snapshot_path:
        click.echo(f"Snapshot: {result.snapshot_path} v{result.snapshot_version} ({result.snapshot_checksum})")
    for key, count in result.counts.items():
        click.echo(f"  {key}: expected {count.expected}, imported {count.imported}, verified {count.verified}")
    if not result.dry_run and result.success:
        r = result.reconciliation
        click.echo(f"Reconciliation: {r.banks_created} banks created, "
                   f"{r.questions_populated} questions populated, {r.orphans_fixed} orphans fixed")
    for warning in result.warnings:
        click.echo(f"WARN: {warning}")
    for error in result.errors:
        click.echo(f"ERROR: {error}", err=True)
    if result.audit_log_path:
        click.echo(f"Audit log: {result.audit_log_path}")
    sys.exit(0 if result.success else 1)


@catalog.command("export")
@click.option("--course-id", "course_ids", multiple=True, help="Course to export (repeatable).")
@click.option("--bundle-id", "bundle_ids", multiple=True, help="Bundle to export (repeatable).")
@click.option("--output", type=click.Path(path_type=Path), default=None, help="Write here instead of the first usable snapshot path.")
def export_command(course_ids, bundle_ids, output):
    """Export the configured courses and bundles to a snapshot file."""
    result = asyncio.run(export_catalog(
        course_ids=list(course_ids) or None,
        bundle_ids=list(bundle_ids) or None,
        paths=[output] if output else None,
    ))
    if not result.success:
        click.echo(f"Catalog export FAILED: {result.error}", err=True)
        sys.exit(1)
    click.echo(f"Catalog snapshot written to {result.output_path}")
    for key, n in result.exported.items():
        click.echo(f"  {key}: {n}")
    if result.final_exams_fixed:
        click.echo(f"Final exam fixes: {result.final_exams_fixed}")
    for warning in result.warnings:
        click.echo(f"WARN: {warning}")


@catalog.command("runs")
@click.option("--limit", default=10, show_default=True, type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
def runs_command(limit: int, as_json: bool):
    """List recent import runs from the audit log directory."""
    runs = list_audit_logs(settings.log_dir(), limit=limit)
    if as_json:
        click.echo(json.dumps(runs, indent=2))
        return
    if not runs:
        click.echo("No import runs recorded.")
        return
    for run in runs:
        status = "ok" if run["success"] else "FAILED"
        click.echo(f"{run['name']}  {status}{'  dry-run' if run['dryRun'] else ''}  "
                   f"errors={run['errors']} warnings={run['warnings']}")


if __name__ == "__main__":
    catalog()
