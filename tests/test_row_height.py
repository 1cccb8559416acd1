from __future__ import annotations

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth

from sopwriter.pipeline.measure import estimate_row_height, key_points, wrap_words
from sopwriter.pipeline.records import PageGeometry, StepRecord


GEOMETRY = PageGeometry()


def _points(count: int) -> str:
    return "\n".join(f"Check torque on fastener group {n}" for n in range(count))


def test_empty_description_gets_placeholder_point() -> None:
    assert key_points(StepRecord(title="Cut")) == ["description for Cut"]
    assert key_points(StepRecord(title="Cut", description="\n  \nSaw\n")) == ["Saw"]


def test_short_step_uses_base_height() -> None:
    step = StepRecord(title="Cut", description="Saw to length")
    assert estimate_row_height(step, geometry=GEOMETRY) == GEOMETRY.base_row_height


def test_height_never_decreases_with_more_points() -> None:
    previous = 0.0
    for count in range(1, 40):
        height = estimate_row_height(StepRecord(title="Torque", description=_points(count)), geometry=GEOMETRY)
        assert height >= previous
        previous = height
    assert previous > GEOMETRY.base_row_height


def test_narrower_width_never_lowers_height() -> None:
    step = StepRecord(title="Torque", description=_points(5))
    wide = estimate_row_height(step, 70.0, GEOMETRY)
    narrow = estimate_row_height(step, 25.0, GEOMETRY)
    assert narrow >= wide


def test_image_reserves_its_block() -> None:
    step = StepRecord(title="Cut", description="Saw", image_ref="https://example.com/cut.jpg")
    expected = GEOMETRY.image_height + GEOMETRY.image_label_height + 2 * GEOMETRY.cell_padding
    assert estimate_row_height(step, geometry=GEOMETRY) == expected


def test_long_reason_grows_the_row() -> None:
    plain = StepRecord(title="Cut", description="Saw")
    reasoned = StepRecord(title="Cut", description="Saw", reason_why=" ".join(["burr"] * 120))
    assert estimate_row_height(reasoned, geometry=GEOMETRY) > estimate_row_height(plain, geometry=GEOMETRY)


def test_wrap_keeps_words_whole_and_within_width() -> None:
    text = "Align the fixture with the datum pins before clamping the workpiece firmly"
    lines = wrap_words(text, "Helvetica", 8, 30.0)
    assert len(lines) > 1
    assert " ".join(lines).split() == text.split()
    for line in lines:
        assert stringWidth(line, "Helvetica", 8) <= 30.0 * mm


def test_overlong_word_gets_its_own_line() -> None:
    lines = wrap_words("a " + "X" * 80 + " b", "Helvetica", 8, 20.0)
    assert lines == ["a", "X" * 80, "b"]
