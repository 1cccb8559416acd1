from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .. import config
from ..errors import ExportFailed, SopValidationError
from ..storage import export_path, partial_path, record_export
from .emit import RenderCommand, emit
from .images import ImageResolver, resolve_images
from .ingest import load_records
from .normalize import check_preconditions, normalize_metadata, normalize_steps
from .paginate import paginate
from .records import PageGeometry, PageLayout, ResolvedImage, SopMetadata, StepRecord
from .render_html import render_html
from .render_pdf import render_pdf


logger = logging.getLogger(__name__)

Backend = Callable[[Sequence[RenderCommand], PageGeometry, Path, str, str], Path]

BACKENDS: Dict[str, Backend] = {
    "pdf": render_pdf,
    "html": render_html,
}


@dataclass(frozen=True)
class ExportResult:
    path: Path
    format: str
    page_count: int
    step_count: int
    image_count: int
    missing_images: int


def sop_filename(title: str, fmt: str = "pdf") -> str:
    stem = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
    return f"{stem}_sop.{fmt}"


def plan_document(
    metadata: SopMetadata,
    steps: Sequence[StepRecord],
    geometry: PageGeometry | None = None,
) -> List[PageLayout]:
    check_preconditions(metadata, list(steps))
    return paginate(steps, geometry or config.page_geometry())


def _write_atomic(backend: Backend, commands, geometry, output_path: Path, metadata: SopMetadata) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = partial_path(output_path)
    try:
        backend(commands, geometry, temp_path, metadata.title, metadata.author)
        temp_path.replace(output_path)
    except Exception as exc:
        logger.exception("Rendering failed for %s", output_path.name)
        temp_path.unlink(missing_ok=True)
        raise ExportFailed(f"Could not write {output_path.name}: {exc}", output_path) from exc
    return output_path


def build_document(
    raw_metadata: Any,
    raw_steps: Sequence[Any],
    fmt: str,
    output_path: Path,
    resolver: ImageResolver | None = None,
    image_limit: int | None = None,
    proxy: str | None = None,
    geometry: PageGeometry | None = None,
    style: dict | None = None,
    images: Dict[int, Optional[ResolvedImage]] | None = None,
) -> ExportResult:
    """
    Lay out and render one SOP from in-memory data.

    Refuses with ``SopValidationError`` before any work when the title or
    the steps are missing. Unresolvable images become placeholders; a
    failing backend raises ``ExportFailed`` and leaves no file behind.
    """
    if fmt not in BACKENDS:
        raise ValueError(f"Unsupported export format: {fmt}")

    metadata = normalize_metadata(raw_metadata)
    steps = normalize_steps(raw_steps)
    check_preconditions(metadata, steps)

    style = config.load_style_preset() if style is None else style
    geometry = geometry or config.page_geometry(style)

    logger.info("Exporting '%s' as %s (%d steps)", metadata.title, fmt, len(steps))
    if images is None:
        images = resolve_images(steps, limit=image_limit, proxy=proxy, resolver=resolver)

    pages = paginate(steps, geometry)
    commands = emit(pages, metadata, steps, geometry, style, images)
    path = _write_atomic(BACKENDS[fmt], commands, geometry, output_path, metadata)

    with_images = [index for index, step in enumerate(steps) if step.image_ref is not None]
    missing = sum(1 for index in with_images if images.get(index) is None)
    logger.info("Wrote %s (%d pages)", path, len(pages))
    return ExportResult(
        path=path,
        format=fmt,
        page_count=len(pages),
        step_count=len(steps),
        image_count=len(with_images),
        missing_images=missing,
    )


def export_sop(
    sop_id: int,
    fmt: str = "pdf",
    dest_dir: Path | None = None,
    resolver: ImageResolver | None = None,
    image_limit: int | None = None,
    proxy: str | None = None,
) -> ExportResult:
    """Export a stored SOP and record the outcome against it."""
    metadata, steps = load_records(sop_id)
    output_path = export_path(sop_filename(metadata.title or f"sop_{sop_id}", fmt), base_dir=dest_dir)
    try:
        result = build_document(
            metadata,
            steps,
            fmt,
            output_path,
            resolver=resolver,
            image_limit=image_limit,
            proxy=proxy,
        )
    except SopValidationError as exc:
        record_export(sop_id, fmt, None, fail_code=exc.code, fail_detail=str(exc))
        raise
    except ExportFailed as exc:
        record_export(sop_id, fmt, None, fail_code="EXPORT_FAILED", fail_detail=exc.reason)
        raise
    record_export(sop_id, fmt, result.path, page_count=result.page_count)
    return result
