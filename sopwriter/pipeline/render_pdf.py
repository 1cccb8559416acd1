from __future__ import annotations

import io
from itertools import groupby
from pathlib import Path
from typing import Sequence

from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .emit import DrawImage, DrawRect, DrawText, RenderCommand
from .measure import wrap_words
from .records import PageGeometry


# ZapfDingbats codes for the glyph characters the emitter uses
DINGBATS = {"✓": "4", "✔": "4"}


def _hex(value: str | None, default=colors.black) -> colors.Color:
    if not value:
        return default
    try:
        return colors.HexColor("#" + str(value).lstrip("#"))
    except ValueError:
        return default


def _y(geometry: PageGeometry, top: float) -> float:
    """Flip a top-based millimetre offset into ReportLab's bottom-up points."""
    return (geometry.page_height - top) * mm


def _draw_rect(canv: canvas.Canvas, cmd: DrawRect, geometry: PageGeometry) -> None:
    style = cmd.style
    fill = 1 if style.fill else 0
    stroke = 1 if style.stroke else 0
    if not (fill or stroke):
        return
    canv.setFillColor(_hex(style.fill, colors.white))
    canv.setStrokeColor(_hex(style.stroke))
    canv.setLineWidth(style.line_width * mm)
    x, y, w, h = cmd.x * mm, _y(geometry, cmd.y + cmd.h), cmd.w * mm, cmd.h * mm
    if style.radius > 0:
        canv.roundRect(x, y, w, h, radius=style.radius * mm, stroke=stroke, fill=fill)
    else:
        canv.rect(x, y, w, h, stroke=stroke, fill=fill)


def _draw_string(canv: canvas.Canvas, x: float, y: float, text: str, align: str) -> None:
    if align == "center":
        canv.drawCentredString(x, y, text)
    elif align == "right":
        canv.drawRightString(x, y, text)
    else:
        canv.drawString(x, y, text)


def _draw_text(canv: canvas.Canvas, cmd: DrawText, geometry: PageGeometry) -> None:
    style = cmd.style
    text = cmd.text
    if style.font == "ZapfDingbats":
        text = "".join(DINGBATS.get(ch, ch) for ch in text)
    canv.setFont(style.font, style.size)
    canv.setFillColor(_hex(style.color))

    if cmd.wrap_width:
        lines = wrap_words(text, style.font, style.size, cmd.wrap_width)
    else:
        lines = [text]

    leading = style.size * 1.2
    y = _y(geometry, cmd.y)
    for line in lines:
        _draw_string(canv, cmd.x * mm, y, line, style.align)
        y -= leading


def _draw_image(canv: canvas.Canvas, cmd: DrawImage, geometry: PageGeometry) -> None:
    reader = ImageReader(io.BytesIO(cmd.data))
    canv.drawImage(
        reader,
        cmd.x * mm,
        _y(geometry, cmd.y + cmd.h),
        width=cmd.w * mm,
        height=cmd.h * mm,
        preserveAspectRatio=True,
        mask="auto",
    )


def draw_commands(canv: canvas.Canvas, commands: Sequence[RenderCommand], geometry: PageGeometry) -> int:
    pages = 0
    for _, page_commands in groupby(commands, key=lambda cmd: cmd.page):
        for cmd in page_commands:
            if isinstance(cmd, DrawRect):
                _draw_rect(canv, cmd, geometry)
            elif isinstance(cmd, DrawText):
                _draw_text(canv, cmd, geometry)
            elif isinstance(cmd, DrawImage):
                _draw_image(canv, cmd, geometry)
            else:
                raise TypeError(f"Unsupported render command: {cmd!r}")
        canv.showPage()
        pages += 1
    return pages


def render_pdf(
    commands: Sequence[RenderCommand],
    geometry: PageGeometry,
    output_path: Path,
    title: str = "",
    author: str = "",
) -> Path:
    canv = canvas.Canvas(str(output_path), pagesize=(geometry.page_width * mm, geometry.page_height * mm))
    canv.setTitle(title)
    canv.setAuthor(author)
    canv.setSubject("Standard Operating Procedure")
    draw_commands(canv, commands, geometry)
    canv.save()
    return output_path
