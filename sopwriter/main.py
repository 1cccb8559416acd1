from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from . import config
from .errors import ExportFailed, SopNotFound, SopValidationError
from .models import reset_engine
from .pipeline.export import ExportResult, build_document, export_sop, plan_document, sop_filename
from .pipeline.ingest import delete_sop, ingest_sop, list_sops, load_records, load_sop_file, update_sop
from .pipeline.render_preview import render_preview

app = typer.Typer(help="Author, store and export Standard Operating Procedures")


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _report(result: ExportResult) -> None:
    typer.echo(f"Exported {result.step_count} steps on {result.page_count} page(s): {result.path}")
    if result.image_count:
        typer.echo(
            f"Note: {result.missing_images} of {result.image_count} images could not be loaded "
            "and were replaced by placeholders."
        )


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in ("pdf", "html"):
        raise typer.BadParameter("format must be pdf or html")
    return fmt


@app.callback()
def main(
    out: Optional[Path] = typer.Option(None, "--out", help="Data directory (database and exports)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if out:
        config.set_out_dir(out)
        reset_engine()


@app.command()
def create(file: Path = typer.Option(..., "--file", help="JSON with metadata and steps")) -> None:
    try:
        sop = ingest_sop(file)
    except SopValidationError as exc:
        _fail(str(exc))
    except (FileNotFoundError, ValueError) as exc:
        _fail(f"Could not read SOP: {exc}")
    typer.echo(f"SOP saved: {sop.id}")


@app.command(name="list")
def list_command() -> None:
    sops = list_sops()
    if not sops:
        typer.echo("No SOPs yet")
        return
    for sop in sops:
        typer.echo(f"{sop.id}\t{sop.title}\tVersion {sop.version}\t{sop.created_at:%Y-%m-%d}")


@app.command()
def show(sop_id: int) -> None:
    try:
        metadata, steps = load_records(sop_id)
    except SopNotFound as exc:
        _fail(str(exc))
    typer.echo(metadata.title)
    for label, value in (
        ("Department", metadata.department),
        ("Author", metadata.author),
        ("Approver", metadata.approver),
        ("Created Date", metadata.created_date),
        ("Approval Date", metadata.approval_date or "Pending"),
        ("Version", metadata.version),
    ):
        typer.echo(f"  {label}: {value}")
    try:
        pages = plan_document(metadata, steps)
    except SopValidationError as exc:
        _fail(str(exc))
    page_of = {row.step_index: layout.page_index for layout in pages for row in layout.rows}
    symbol_of = {row.step_index: row.symbol.symbol_type.value for layout in pages for row in layout.rows}
    for index, step in enumerate(steps):
        typer.echo(f"{index + 1}. {step.title}  [{symbol_of[index]}, page {page_of[index] + 1}]")
        for line in step.description.splitlines():
            if line.strip():
                typer.echo(f"     - {line.strip()}")
        if step.reason_why:
            typer.echo(f"     why: {step.reason_why}")


@app.command()
def edit(
    sop_id: int,
    file: Path = typer.Option(..., "--file", help="JSON with metadata and steps"),
) -> None:
    try:
        metadata, steps = load_sop_file(file)
        update_sop(sop_id, metadata, steps)
    except (SopNotFound, SopValidationError) as exc:
        _fail(str(exc))
    except (FileNotFoundError, ValueError) as exc:
        _fail(f"Could not read SOP: {exc}")
    typer.echo(f"SOP updated: {sop_id}")


@app.command()
def delete(sop_id: int, yes: bool = typer.Option(False, "--yes", help="Skip confirmation")) -> None:
    if not yes:
        typer.confirm(f"Delete SOP {sop_id}?", abort=True)
    try:
        delete_sop(sop_id)
    except SopNotFound as exc:
        _fail(str(exc))
    typer.echo(f"SOP deleted: {sop_id}")


@app.command()
def export(
    sop_id: int,
    fmt: str = typer.Option("pdf", "--format", help="pdf or html"),
    dest: Optional[Path] = typer.Option(None, "--dest", help="Directory for the exported file"),
    image_limit: int = typer.Option(config.IMAGE_FETCH_LIMIT, "--image-limit", help="Concurrent image fetches"),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="Image relay URL template containing {url}"),
) -> None:
    fmt = _check_format(fmt)
    try:
        result = export_sop(sop_id, fmt, dest_dir=dest, image_limit=image_limit, proxy=proxy)
    except (SopNotFound, SopValidationError) as exc:
        _fail(str(exc))
    except ExportFailed as exc:
        _fail(f"Export failed: {exc.reason}")
    _report(result)


@app.command()
def render(
    file: Path = typer.Option(..., "--file", help="JSON with metadata and steps"),
    fmt: str = typer.Option("pdf", "--format", help="pdf or html"),
    dest: Path = typer.Option(Path("."), "--dest", help="Directory for the exported file"),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="Image relay URL template containing {url}"),
) -> None:
    """Export straight from a JSON file without storing it."""
    fmt = _check_format(fmt)
    try:
        metadata, steps = load_sop_file(file)
        title = str(metadata.get("title") or "").strip()
        output_path = dest / sop_filename(title or "untitled", fmt)
        result = build_document(metadata, steps, fmt, output_path, proxy=proxy)
    except SopValidationError as exc:
        _fail(str(exc))
    except ExportFailed as exc:
        _fail(f"Export failed: {exc.reason}")
    except (FileNotFoundError, ValueError) as exc:
        _fail(f"Could not read SOP: {exc}")
    _report(result)


@app.command()
def preview(
    sop_id: int,
    page: int = typer.Option(1, "--page", min=1, help="Page to rasterise"),
    dest: Optional[Path] = typer.Option(None, "--dest", help="Directory for the exported files"),
) -> None:
    try:
        result = export_sop(sop_id, "pdf", dest_dir=dest)
        png = render_preview(result.path, page_index=page - 1)
    except (SopNotFound, SopValidationError) as exc:
        _fail(str(exc))
    except ExportFailed as exc:
        _fail(f"Export failed: {exc.reason}")
    except ValueError as exc:
        _fail(str(exc))
    typer.echo(f"Preview written: {png}")


if __name__ == "__main__":
    app()
