from __future__ import annotations

import pytest

from sopwriter.errors import SopValidationError
from sopwriter.pipeline.normalize import (
    check_preconditions,
    normalize_metadata,
    normalize_steps,
    parse_symbol,
)
from sopwriter.pipeline.records import SopMetadata, StepRecord, SymbolType


def test_untitled_steps_are_dropped_in_order() -> None:
    raw = [
        {"title": "Cut"},
        {"title": "   ", "description": "ignored"},
        {"description": "no title"},
        StepRecord(title="Deburr"),
        {"title": "Inspect"},
    ]
    steps = normalize_steps(raw)
    assert [step.title for step in steps] == ["Cut", "Deburr", "Inspect"]


def test_stored_camel_case_fields_are_read() -> None:
    steps = normalize_steps(
        [
            {
                "title": "Weld seam",
                "description": "Clamp part\nWeld",
                "symbolType": "hazard",
                "reasonWhy": "Hot metal",
                "imageUrl": "https://example.com/weld.jpg",
                "imageName": "weld.jpg",
            }
        ]
    )
    step = steps[0]
    assert step.symbol_type is SymbolType.HAZARD
    assert step.reason_why == "Hot metal"
    assert step.image_ref == "https://example.com/weld.jpg"


def test_blank_image_url_means_no_image() -> None:
    steps = normalize_steps([{"title": "Paint", "imageUrl": ""}])
    assert steps[0].image_ref is None


def test_metadata_defaults_version() -> None:
    metadata = normalize_metadata({"title": "Assembly A", "createdDate": "2024-03-01"})
    assert metadata.version == "1.0"
    assert metadata.created_date == "2024-03-01"
    assert metadata.author == ""


def test_unknown_symbol_rejected() -> None:
    assert parse_symbol("") is None
    assert parse_symbol("Quality") is SymbolType.QUALITY
    with pytest.raises(ValueError):
        parse_symbol("sparkle")


def test_missing_title_refused() -> None:
    with pytest.raises(SopValidationError) as info:
        check_preconditions(SopMetadata(title="  "), [StepRecord(title="Cut")])
    assert info.value.code == SopValidationError.TITLE_REQUIRED


def test_missing_steps_refused() -> None:
    steps = normalize_steps([{"title": ""}, {"description": "orphan"}])
    with pytest.raises(SopValidationError) as info:
        check_preconditions(SopMetadata(title="Assembly A"), steps)
    assert info.value.code == SopValidationError.STEP_REQUIRED
