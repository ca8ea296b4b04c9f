from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from .catalog import load_catalog, title_case
from .config import load_settings
from .exceptions import SurveyError
from .logging_setup import configure_logging
from .persistence import DraftStore
from .remote import submit_survey
from .session import SurveySession


app = typer.Typer(help="Empty Homes Survey CLI", add_completion=False, no_args_is_help=True)


@app.callback()
def main() -> None:
    configure_logging()


def _session(settings_path: Optional[str], draft: Optional[Path] = None) -> SurveySession:
    settings = load_settings(Path(settings_path) if settings_path else None)
    catalog = load_catalog(settings.catalog_path)
    drafts = DraftStore(draft.parent, key=draft.stem) if draft else None
    return SurveySession(catalog, settings, drafts)


def _load(source: str, settings_path: Optional[str]) -> SurveySession:
    """Session from a saved draft (.json) or an exported workbook (.xlsx)."""
    path = Path(source)
    if not path.exists():
        typer.echo(f"Not found: {path}")
        raise typer.Exit(code=2)
    try:
        if path.suffix.lower() == ".json":
            session = _session(settings_path, path)
            if not session.resume():
                typer.echo(f"No draft in {path}")
                raise typer.Exit(code=2)
        else:
            session = _session(settings_path)
            session.import_xlsx(path.read_bytes())
    except (SurveyError, ValueError) as e:
        typer.echo(f"Could not load {path}: {e}")
        raise typer.Exit(code=2)
    return session


@app.command()
def totals(
    source: str = typer.Argument(..., help="Draft JSON or exported survey workbook"),
    settings: Optional[str] = typer.Option(None, help="Path to settings.yaml"),
    as_json: bool = typer.Option(False, "--json", help="Print totals as JSON"),
):
    """Print void and recharge totals for a survey."""
    t = _load(source, settings).totals()
    if as_json:
        typer.echo(t.model_dump_json(indent=2))
        return
    typer.echo(f"Void SMV:      {t.void_smv} min ({t.void_days:.1f} days)")
    typer.echo(f"Void cost:     £{t.void_cost}")
    typer.echo(f"Recharge SMV:  {round(t.recharge_smv)} min ({t.recharge_days:.1f} days)")
    typer.echo(f"Recharge cost: £{t.recharge_cost}")
    if t.recharge_warning:
        typer.echo("Warning: recharge time exceeds 5 days")


@app.command()
def recharge(
    source: str = typer.Argument(..., help="Draft JSON or exported survey workbook"),
    settings: Optional[str] = typer.Option(None, help="Path to settings.yaml"),
):
    """List the items flagged for recharge."""
    lines = _load(source, settings).recharge_lines()
    if not lines:
        typer.echo("No recharge items.")
        return
    for r in lines:
        code = f"{r.code} " if r.code else ""
        note = f" ({r.comment})" if r.comment else ""
        typer.echo(f"{title_case(r.section)}: {code}{r.description} £{r.cost}{note}")


@app.command()
def export(
    source: str = typer.Argument(..., help="Draft JSON or exported survey workbook"),
    out: Optional[str] = typer.Option(None, help="Output folder (default: alongside the source)"),
    bundle: bool = typer.Option(True, help="Also write the zip bundle of both files"),
    submit: bool = typer.Option(False, help="Submit to the dashboard and document store"),
    settings: Optional[str] = typer.Option(None, help="Path to settings.yaml"),
):
    """Write the workbook and PDF for a survey."""
    session = _load(source, settings)
    out_dir = Path(out) if out else Path(source).parent
    out_dir.mkdir(parents=True, exist_ok=True)

    exports = [session.export_xlsx(), session.export_pdf()]
    if bundle:
        exports.append(session.export_bundle())
    for name, data in exports:
        (out_dir / name).write_bytes(data)
        typer.echo(f"Wrote {out_dir / name}")

    # Files are on disk before anything touches the network
    if submit:
        results = asyncio.run(submit_survey(session.submission_payload(), session.settings))
        for r in results:
            state = "skipped" if r.skipped else ("ok" if r.ok else f"failed ({r.error})")
            typer.echo(f"[{r.target}] {state}")


@app.command("import-survey")
def import_survey_cmd(
    workbook: str = typer.Argument(..., help="Previously exported survey workbook"),
    draft: str = typer.Option("drafts/emptyHomesSurveyDraft.json", help="Draft file to write"),
    settings: Optional[str] = typer.Option(None, help="Path to settings.yaml"),
):
    """Rebuild a survey draft from an exported workbook."""
    path = Path(workbook)
    if not path.exists():
        typer.echo(f"Not found: {path}")
        raise typer.Exit(code=2)
    draft_path = Path(draft)
    session = _session(settings, draft_path)
    try:
        report = session.import_xlsx(path.read_bytes())
    except SurveyError as e:
        typer.echo(f"Import failed: {e}")
        raise typer.Exit(code=2)
    session.writer.cancel()
    session.drafts.save(session.snapshot())
    typer.echo(f"Imported {len(report.fields)} fields, {report.matched} matched and {report.appended} new items")
    if report.skipped_labels or report.skipped_sections:
        typer.echo(f"Skipped: {', '.join(report.skipped_labels + report.skipped_sections)}")
    typer.echo(f"Wrote {draft_path}")


@app.command("build-catalog")
def build_catalog(
    price_list: str = typer.Argument(..., help="Price list sheet (.xlsx or .csv)"),
    out: str = typer.Option("configs/sors.json", help="Catalog JSON to write"),
):
    """Convert a flat schedule-of-rates price list into the catalog document."""
    from .importers.catalog_xlsx import build_catalog_from_sheet

    doc = build_catalog_from_sheet(Path(price_list))
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
    count = sum(len(v) for v in doc.values())
    typer.echo(f"Wrote {count} entries to {out_path}")


if __name__ == "__main__":  # pragma: no cover
    app()
