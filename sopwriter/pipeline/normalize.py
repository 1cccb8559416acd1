from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from ..config import DEFAULT_VERSION
from ..errors import SopValidationError
from .records import SopMetadata, StepRecord, SymbolType


# stored documents use camelCase, Python callers snake_case
_STEP_KEYS = {
    "title": ("title",),
    "description": ("description",),
    "symbol_type": ("symbol_type", "symbolType"),
    "reason_why": ("reason_why", "reasonWhy"),
    "image_ref": ("image_ref", "imageRef", "image_url", "imageUrl"),
}

_METADATA_KEYS = {
    "title": ("title",),
    "author": ("author",),
    "department": ("department",),
    "approver": ("approver",),
    "created_date": ("created_date", "createdDate"),
    "approval_date": ("approval_date", "approvalDate"),
    "version": ("version",),
}


def _pick(raw: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def parse_symbol(value: Any) -> Optional[SymbolType]:
    if value is None or isinstance(value, SymbolType):
        return value
    token = str(value).strip().lower()
    if not token:
        return None
    try:
        return SymbolType(token)
    except ValueError:
        raise ValueError(f"Unknown symbol type: {value}") from None


def to_step_record(raw: StepRecord | Mapping[str, Any]) -> StepRecord:
    if isinstance(raw, StepRecord):
        return raw
    image_ref = _pick(raw, _STEP_KEYS["image_ref"])
    if isinstance(image_ref, str) and not image_ref.strip():
        image_ref = None
    return StepRecord(
        title=_text(_pick(raw, _STEP_KEYS["title"])).strip(),
        description=_text(_pick(raw, _STEP_KEYS["description"])),
        symbol_type=parse_symbol(_pick(raw, _STEP_KEYS["symbol_type"])),
        reason_why=_text(_pick(raw, _STEP_KEYS["reason_why"])).strip(),
        image_ref=image_ref,
    )


def normalize_steps(raw_steps: Iterable[StepRecord | Mapping[str, Any]]) -> List[StepRecord]:
    """Drop steps without a usable title, keeping the caller's order."""
    steps: List[StepRecord] = []
    for raw in raw_steps or []:
        step = to_step_record(raw)
        if step.title.strip():
            steps.append(step)
    return steps


def normalize_metadata(raw: SopMetadata | Mapping[str, Any]) -> SopMetadata:
    if isinstance(raw, SopMetadata):
        return raw
    values = {key: _text(_pick(raw, names)).strip() for key, names in _METADATA_KEYS.items()}
    values["version"] = values["version"] or DEFAULT_VERSION
    return SopMetadata(**values)


def check_preconditions(metadata: SopMetadata, steps: List[StepRecord]) -> None:
    if not metadata.title.strip():
        raise SopValidationError(SopValidationError.TITLE_REQUIRED, "SOP title is required")
    if not steps:
        raise SopValidationError(SopValidationError.STEP_REQUIRED, "Add at least one step")
