from __future__ import annotations

from typing import List

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth

from .records import PageGeometry, StepRecord


def key_points(step: StepRecord) -> List[str]:
    points = [line.strip() for line in (step.description or "").splitlines() if line.strip()]
    if not points:
        points = [f"description for {step.title}"]
    return points


def numbered_points(step: StepRecord) -> List[str]:
    return [f"{n}. {point}" for n, point in enumerate(key_points(step), start=1)]


def wrap_words(text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    """
    Greedy word wrap. ``max_width`` is in millimetres, widths are measured
    with the ReportLab metrics of ``font_name`` at ``font_size`` points.
    A word wider than the line still gets a line of its own.
    """
    words = (text or "").split()
    if not words:
        return [""]

    limit = max_width * mm
    lines: List[str] = []
    cur: List[str] = []

    for w in words:
        test = " ".join(cur + [w])
        if stringWidth(test, font_name, font_size) <= limit:
            cur.append(w)
            continue

        if cur:
            lines.append(" ".join(cur))
            cur = [w]
        else:
            lines.append(w)

    if cur:
        lines.append(" ".join(cur))

    return lines


def wrap_points(points: List[str], font_name: str, font_size: float, max_width: float) -> List[str]:
    out: List[str] = []
    for point in points:
        out.extend(wrap_words(point, font_name, font_size, max_width))
    return out


def title_lines(step: StepRecord, geometry: PageGeometry) -> List[str]:
    return wrap_words(step.title, geometry.bold_font_name, geometry.body_size, geometry.text_width("what"))


def reason_lines(step: StepRecord, geometry: PageGeometry) -> List[str]:
    if not step.reason_why:
        return []
    return wrap_words(step.reason_why, geometry.font_name, geometry.body_size, geometry.text_width("why"))


def estimate_row_height(
    step: StepRecord,
    max_text_width: float | None = None,
    geometry: PageGeometry | None = None,
) -> float:
    geometry = geometry or PageGeometry()
    width = geometry.text_width("how") if max_text_width is None else max_text_width

    how = wrap_points(numbered_points(step), geometry.font_name, geometry.body_size, width)
    line_count = max(len(how), len(title_lines(step, geometry)), len(reason_lines(step, geometry)))

    height = max(geometry.base_row_height, line_count * geometry.line_height + 2 * geometry.cell_padding)
    if step.image_ref is not None:
        image_block = geometry.image_height + geometry.image_label_height + 2 * geometry.cell_padding
        height = max(height, image_block)
    return height
