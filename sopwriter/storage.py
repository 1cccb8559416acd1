from __future__ import annotations

from pathlib import Path

from . import config
from .models import ExportStatus, SopExport, get_session


def export_dir(base_dir: Path | None = None) -> Path:
    path = base_dir or config.export_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def export_path(filename: str, base_dir: Path | None = None) -> Path:
    if "/" in filename or "\\" in filename or filename.startswith("."):
        raise ValueError(f"Invalid export filename: {filename}")
    return export_dir(base_dir) / filename


def partial_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.part")


def _relative(path: Path) -> str:
    try:
        return str(path.relative_to(config.OUT_DIR))
    except ValueError:
        return str(path)


def record_export(
    sop_id: int,
    fmt: str,
    path: Path | None,
    page_count: int = 0,
    fail_code: str | None = None,
    fail_detail: str | None = None,
) -> SopExport:
    entry = SopExport(
        sop_id=sop_id,
        format=fmt,
        path=_relative(path) if path is not None else None,
        status=ExportStatus.FAILED if fail_code else ExportStatus.READY,
        page_count=page_count,
        fail_code=fail_code,
        fail_detail=fail_detail,
    )
    with get_session() as session:
        session.add(entry)
        session.commit()
        session.refresh(entry)
    return entry
