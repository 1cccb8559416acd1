from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, List, Mapping, Sequence, Tuple

from sqlmodel import Session, select

from ..errors import SopNotFound
from ..models import Sop, SopExport, SopStep, get_session, init_db
from .normalize import check_preconditions, normalize_metadata, normalize_steps, to_step_record
from .records import SopMetadata, StepRecord


logger = logging.getLogger(__name__)


def load_sop_file(path: Path) -> Tuple[dict, List[dict]]:
    """Read a ``{"metadata": {...}, "steps": [...]}`` JSON document."""
    if not path.exists():
        raise FileNotFoundError(f"SOP file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError("SOP file must contain a JSON object")
    metadata = payload.get("metadata")
    steps = payload.get("steps", [])
    if not isinstance(metadata, dict):
        raise ValueError("SOP file has no metadata object")
    if not isinstance(steps, list):
        raise ValueError("SOP steps must be a list")
    return metadata, steps


def _image_names(raw_steps: Sequence[Any]) -> List[str]:
    """Image names of the steps that survive normalization, in the same order."""
    names: List[str] = []
    for raw in raw_steps or []:
        if not to_step_record(raw).title.strip():
            continue
        if isinstance(raw, Mapping):
            names.append(str(raw.get("imageName") or raw.get("image_name") or ""))
        else:
            names.append("")
    return names


def _step_rows(sop_id: int, steps: Sequence[StepRecord], image_names: Sequence[str]) -> List[SopStep]:
    rows: List[SopStep] = []
    for position, (step, image_name) in enumerate(zip(steps, image_names)):
        if isinstance(step.image_ref, bytes):
            raise ValueError(f"Step {position + 1}: stored steps need an image URL or path, not bytes")
        rows.append(
            SopStep(
                sop_id=sop_id,
                position=position,
                title=step.title,
                description=step.description,
                symbol_type=step.symbol_type,
                reason_why=step.reason_why,
                image_url=step.image_ref or "",
                image_name=image_name,
            )
        )
    return rows


def _delete_rows(session: Session, model, sop_id: int) -> None:
    for row in list(session.exec(select(model).where(model.sop_id == sop_id))):
        session.delete(row)
    session.flush()


def _prepare(raw_metadata: Any, raw_steps: Sequence[Any]) -> Tuple[SopMetadata, List[StepRecord]]:
    metadata = normalize_metadata(raw_metadata)
    steps = normalize_steps(raw_steps)
    check_preconditions(metadata, steps)
    return metadata, steps


def _apply_metadata(sop: Sop, metadata: SopMetadata) -> None:
    sop.title = metadata.title
    sop.author = metadata.author
    sop.department = metadata.department
    sop.approver = metadata.approver
    sop.created_date = metadata.created_date
    sop.approval_date = metadata.approval_date
    sop.version = metadata.version


def save_sop(raw_metadata: Any, raw_steps: Sequence[Any]) -> Sop:
    init_db()
    metadata, steps = _prepare(raw_metadata, raw_steps)
    if not metadata.created_date:
        metadata = replace(metadata, created_date=date.today().isoformat())
    sop = Sop(title=metadata.title)
    _apply_metadata(sop, metadata)
    with get_session() as session:
        session.add(sop)
        session.flush()
        session.add_all(_step_rows(sop.id, steps, _image_names(raw_steps)))
        session.commit()
        session.refresh(sop)
    logger.info("Saved SOP %s (%d steps)", sop.id, len(steps))
    return sop


def update_sop(sop_id: int, raw_metadata: Any, raw_steps: Sequence[Any]) -> Sop:
    init_db()
    metadata, steps = _prepare(raw_metadata, raw_steps)
    with get_session() as session:
        sop = session.get(Sop, sop_id)
        if sop is None:
            raise SopNotFound(sop_id)
        _apply_metadata(sop, metadata)
        session.add(sop)
        _delete_rows(session, SopStep, sop_id)
        session.add_all(_step_rows(sop.id, steps, _image_names(raw_steps)))
        session.commit()
        session.refresh(sop)
    logger.info("Updated SOP %s (%d steps)", sop_id, len(steps))
    return sop


def ingest_sop(path: Path) -> Sop:
    metadata, steps = load_sop_file(path)
    return save_sop(metadata, steps)


def get_sop(sop_id: int) -> Tuple[Sop, List[SopStep]]:
    init_db()
    with get_session() as session:
        sop = session.get(Sop, sop_id)
        if sop is None:
            raise SopNotFound(sop_id)
        statement = select(SopStep).where(SopStep.sop_id == sop_id).order_by(SopStep.position)
        return sop, list(session.exec(statement))


def load_records(sop_id: int) -> Tuple[SopMetadata, List[StepRecord]]:
    sop, rows = get_sop(sop_id)
    metadata = SopMetadata(
        title=sop.title,
        author=sop.author,
        department=sop.department,
        approver=sop.approver,
        created_date=sop.created_date,
        approval_date=sop.approval_date,
        version=sop.version,
    )
    steps = [
        StepRecord(
            title=row.title,
            description=row.description,
            symbol_type=row.symbol_type,
            reason_why=row.reason_why,
            image_ref=row.image_url or None,
        )
        for row in rows
    ]
    return metadata, steps


def list_sops() -> List[Sop]:
    init_db()
    with get_session() as session:
        statement = select(Sop).order_by(Sop.created_at.desc(), Sop.id.desc())
        return list(session.exec(statement))


def delete_sop(sop_id: int) -> None:
    init_db()
    with get_session() as session:
        sop = session.get(Sop, sop_id)
        if sop is None:
            raise SopNotFound(sop_id)
        _delete_rows(session, SopStep, sop_id)
        _delete_rows(session, SopExport, sop_id)
        session.delete(sop)
        session.commit()
    logger.info("Deleted SOP %s", sop_id)
