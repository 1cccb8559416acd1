from __future__ import annotations

import base64
from html import escape
from itertools import groupby
from pathlib import Path
from typing import List, Sequence

from .emit import BASELINE, PT_TO_MM, DrawImage, DrawRect, DrawText, RenderCommand
from .records import PageGeometry


FONT_FAMILIES = {
    "Helvetica": "Helvetica, Arial, sans-serif",
    "Helvetica-Bold": "Helvetica, Arial, sans-serif",
    "ZapfDingbats": "'Segoe UI Symbol', 'DejaVu Sans', sans-serif",
}

_PAGE_CSS = """
@page {{ size: {w}mm {h}mm; margin: 0; }}
body {{ margin: 0; background: #E5E7EB; }}
.page {{ position: relative; width: {w}mm; height: {h}mm; margin: 8mm auto; background: #FFFFFF;
         overflow: hidden; page-break-after: always; break-after: page; }}
.page > * {{ position: absolute; box-sizing: border-box; }}
.t {{ white-space: pre; line-height: 1; }}
.t.wrap {{ white-space: normal; line-height: 1.2; }}
.print-bar {{ text-align: right; max-width: {w}mm; margin: 8mm auto 0; }}
@media print {{
  body {{ background: none; }}
  .page {{ margin: 0; }}
  .print-bar {{ display: none; }}
}}
"""


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _rect(cmd: DrawRect) -> str:
    style = cmd.style
    css = [f"left:{_num(cmd.x)}mm", f"top:{_num(cmd.y)}mm", f"width:{_num(cmd.w)}mm", f"height:{_num(cmd.h)}mm"]
    if style.fill:
        css.append(f"background:{style.fill}")
    if style.stroke:
        css.append(f"border:{_num(style.line_width)}mm solid {style.stroke}")
    if style.radius:
        css.append(f"border-radius:{_num(style.radius)}mm")
    return f'<div style="{";".join(css)}"></div>'


def _text(cmd: DrawText) -> str:
    style = cmd.style
    size_mm = style.size * PT_TO_MM
    top = cmd.y - size_mm * BASELINE
    family = FONT_FAMILIES.get(style.font, "sans-serif")
    weight = "bold" if style.font.endswith("-Bold") else "normal"
    css = [
        f"top:{_num(top)}mm",
        f"font-family:{family}",
        f"font-size:{_num(style.size)}pt",
        f"font-weight:{weight}",
        f"color:{style.color}",
    ]
    if style.align == "center":
        css.append(f"left:{_num(cmd.x)}mm;transform:translateX(-50%)")
    elif style.align == "right":
        css.append(f"left:{_num(cmd.x)}mm;transform:translateX(-100%)")
    else:
        css.append(f"left:{_num(cmd.x)}mm")
    classes = "t"
    if cmd.wrap_width:
        classes += " wrap"
        css.append(f"width:{_num(cmd.wrap_width)}mm")
    return f'<div class="{classes}" style="{";".join(css)}">{escape(cmd.text)}</div>'


def _image(cmd: DrawImage) -> str:
    payload = base64.b64encode(cmd.data).decode("ascii")
    css = f"left:{_num(cmd.x)}mm;top:{_num(cmd.y)}mm;width:{_num(cmd.w)}mm;height:{_num(cmd.h)}mm"
    alt = escape(cmd.image_ref or "step image", quote=True)
    return f'<img style="{css}" src="data:{cmd.mime};base64,{payload}" alt="{alt}">'


def render_markup(
    commands: Sequence[RenderCommand],
    geometry: PageGeometry,
    title: str = "",
    author: str = "",
) -> str:
    parts: List[str] = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(title)} - SOP</title>",
        f'<meta name="author" content="{escape(author, quote=True)}">',
        "<style>" + _PAGE_CSS.format(w=_num(geometry.page_width), h=_num(geometry.page_height)) + "</style>",
        "</head>",
        "<body>",
        '<div class="print-bar"><button onclick="window.print()">Print / Save as PDF</button></div>',
    ]
    for page, page_commands in groupby(commands, key=lambda cmd: cmd.page):
        parts.append(f'<section class="page" data-page="{page + 1}">')
        for cmd in page_commands:
            if isinstance(cmd, DrawRect):
                parts.append(_rect(cmd))
            elif isinstance(cmd, DrawText):
                parts.append(_text(cmd))
            elif isinstance(cmd, DrawImage):
                parts.append(_image(cmd))
            else:
                raise TypeError(f"Unsupported render command: {cmd!r}")
        parts.append("</section>")
    parts.extend(["</body>", "</html>"])
    return "\n".join(parts) + "\n"


def render_html(
    commands: Sequence[RenderCommand],
    geometry: PageGeometry,
    output_path: Path,
    title: str = "",
    author: str = "",
) -> Path:
    output_path.write_text(render_markup(commands, geometry, title, author), encoding="utf-8")
    return output_path
