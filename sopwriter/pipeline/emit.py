from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Union

from .. import config
from .measure import numbered_points, reason_lines, title_lines, wrap_points
from .records import (
    Glyph,
    PageGeometry,
    PageLayout,
    ResolvedImage,
    RowPlacement,
    SopMetadata,
    StepRecord,
)
from .symbols import GLYPHS, LEGEND_ORDER


@dataclass(frozen=True)
class RectStyle:
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0.2
    radius: float = 0.0


@dataclass(frozen=True)
class TextStyle:
    font: str
    size: float
    color: str
    align: str = "left"  # left | center | right


@dataclass(frozen=True)
class DrawRect:
    page: int
    x: float
    y: float
    w: float
    h: float
    style: RectStyle


@dataclass(frozen=True)
class DrawText:
    """Text whose baseline sits at ``y``; ``x`` is the anchor for ``style.align``."""

    page: int
    x: float
    y: float
    text: str
    style: TextStyle
    wrap_width: Optional[float] = None


@dataclass(frozen=True)
class DrawImage:
    page: int
    x: float
    y: float
    w: float
    h: float
    image_ref: Optional[str]
    data: bytes
    mime: str


RenderCommand = Union[DrawRect, DrawText, DrawImage]

# baseline offset below a line's top, as a share of the line height
BASELINE = 0.75
PT_TO_MM = 25.4 / 72.0


def _s(style: dict, key: str, default: str) -> str:
    return str(style.get(key) or default)


def instruction_number(metadata: SopMetadata) -> str:
    digest = hashlib.md5(metadata.title.encode("utf-8")).hexdigest()
    return f"SOP_{int(digest[:8], 16) % 100000:05d}"


def template_number(metadata: SopMetadata) -> str:
    return f"SOP_{metadata.title[:10]}"


class _Emitter:
    def __init__(self, geometry: PageGeometry, style: dict, page_count: int) -> None:
        self.g = geometry
        self.style = style
        self.page_count = page_count
        self.commands: List[RenderCommand] = []
        grid = _s(style, "grid_color", "#9CA3AF")
        text = _s(style, "text_color", "#111827")
        self.cell = RectStyle(stroke=grid)
        self.head_cell = RectStyle(fill=_s(style, "header_fill", "#F3F4F6"), stroke=grid)
        self.placeholder = RectStyle(fill=_s(style, "placeholder_fill", "#F0F0F0"))
        self.body = TextStyle(geometry.font_name, geometry.body_size, text)
        self.bold = TextStyle(geometry.bold_font_name, geometry.body_size, text)
        self.muted = TextStyle(geometry.font_name, geometry.body_size, _s(style, "muted_color", "#6B7280"))

    def rect(self, page: int, x: float, y: float, w: float, h: float, style: RectStyle) -> None:
        self.commands.append(DrawRect(page, x, y, w, h, style))

    def text(self, page: int, x: float, y: float, text: str, style: TextStyle, wrap_width=None) -> None:
        self.commands.append(DrawText(page, x, y, text, style, wrap_width))

    def lines(self, page: int, x: float, top: float, lines: Sequence[str], style: TextStyle) -> None:
        y = top + self.g.line_height * BASELINE
        for line in lines:
            self.text(page, x, y, line, style)
            y += self.g.line_height

    # --- page furniture, repeated on every page ---

    def heading(self, page: int, metadata: SopMetadata) -> None:
        g = self.g
        y = g.margin + g.title_height * 0.7
        title = TextStyle(g.bold_font_name, g.heading_size, self.body.color, "center")
        self.text(page, g.page_width / 2, y, config.DOCUMENT_HEADING, title)
        label = TextStyle(g.font_name, g.body_size, self.muted.color, "right")
        self.text(page, g.page_width - g.margin, y, f"Page {page + 1} of {self.page_count}", label)

    def metadata_grid(self, page: int, metadata: SopMetadata) -> None:
        g = self.g
        cells = [
            [
                ("Template No.:", template_number(metadata)),
                ("Department", metadata.department),
                ("Area", config.AREA_TEXT),
            ],
            [
                ("Operation", metadata.title),
                ("Instruction no.:", instruction_number(metadata)),
                ("Version", metadata.version),
            ],
            [
                ("Author", metadata.author),
                ("Approver", metadata.approver),
                ("Created Date", metadata.created_date),
            ],
        ][: g.meta_rows]
        cell_w = g.usable_width / 3
        top = g.margin + g.title_height
        for row in cells:
            for i, (label, value) in enumerate(row):
                x = g.margin + i * cell_w
                self.rect(page, x, top, cell_w, g.meta_row_height, self.cell)
                pad = g.cell_padding
                self.text(page, x + pad, top + g.meta_row_height * 0.4, label, self.bold)
                self.text(page, x + pad, top + g.meta_row_height * 0.82, value, self.body)
            top += g.meta_row_height

    def glyph(self, page: int, glyph: Glyph, cx: float, cy: float) -> None:
        size = self.g.glyph_size
        color = _s(self.style, glyph.color_key, "#111827")
        x, y = cx - size / 2, cy - size / 2
        if glyph.shape == "circle":
            self.rect(page, x, y, size, size, RectStyle(fill=color, radius=size / 2))
        elif glyph.shape == "square_plus":
            self.rect(page, x, y, size, size, RectStyle(fill=color))
            plus = TextStyle(self.g.bold_font_name, self.g.body_size, "#FFFFFF", "center")
            self.text(page, cx, cy + self.g.body_size * PT_TO_MM * 0.35, "+", plus)
        elif glyph.shape == "check":
            check = TextStyle("ZapfDingbats", self.g.body_size + 2, color, "center")
            self.text(page, cx, cy + (self.g.body_size + 2) * PT_TO_MM * 0.35, "✓", check)
        else:
            raise ValueError(f"Unknown glyph shape: {glyph.shape}")

    def legend(self, page: int) -> None:
        g = self.g
        top = g.margin + g.title_height + g.meta_rows * g.meta_row_height
        cy = top + g.legend_height / 2
        baseline = cy + g.body_size * PT_TO_MM * 0.35
        self.text(page, g.margin, baseline, "Legend:", self.bold)
        x = g.margin + 16
        for symbol_type in LEGEND_ORDER:
            self.glyph(page, GLYPHS[symbol_type], x + g.glyph_size / 2, cy)
            self.text(page, x + g.glyph_size + 1.5, baseline, symbol_type.value.title(), self.body)
            x += 32

    def table_head(self, page: int) -> None:
        g = self.g
        top = g.content_top - g.table_head_height
        baseline = top + g.table_head_height / 2 + g.body_size * PT_TO_MM * 0.35
        x = g.margin
        for column in g.columns:
            self.rect(page, x, top, column.width, g.table_head_height, self.head_cell)
            self.text(page, x + g.cell_padding, baseline, column.label, self.bold)
            x += column.width

    def footer(self, page: int, metadata: SopMetadata) -> None:
        g = self.g
        top = g.page_height - g.margin - g.footer_height
        label_w = g.usable_width / 4
        rows = [
            [
                ("Approval Date", label_w, self.bold),
                (metadata.approval_date or "Pending", label_w, self.body),
                (f"Prepared by: {metadata.author}", 2 * label_w, self.body),
            ],
            [
                ("Tools", label_w, self.bold),
                (config.TOOLS_TEXT, 3 * label_w, self.body),
            ],
        ][: g.footer_rows]
        for row in rows:
            x = g.margin
            baseline = top + g.footer_row_height / 2 + g.body_size * PT_TO_MM * 0.35
            for text, width, style in row:
                self.rect(page, x, top, width, g.footer_row_height, self.cell)
                self.text(page, x + g.cell_padding, baseline, text, style, wrap_width=width - 2 * g.cell_padding)
                x += width
            top += g.footer_row_height

    # --- step rows ---

    def row(self, page: int, placement: RowPlacement, step: StepRecord, image: Optional[ResolvedImage]) -> None:
        g = self.g
        top, height, pad = placement.top, placement.height, g.cell_padding
        number = placement.step_index + 1
        for column in g.columns:
            self.rect(page, g.column_x(column.key), top, column.width, height, self.cell)

        centered = TextStyle(self.body.font, self.body.size, self.body.color, "center")
        col = g.column("number")
        self.lines(page, g.column_x("number") + col.width / 2, top + pad, [str(number)], centered)

        self.lines(page, g.column_x("what") + pad, top + pad, title_lines(step, g), self.bold)
        how = wrap_points(numbered_points(step), g.font_name, g.body_size, g.text_width("how"))
        self.lines(page, g.column_x("how") + pad, top + pad, how, self.body)
        self.lines(page, g.column_x("why") + pad, top + pad, reason_lines(step, g), self.body)

        glyph_cy = top + pad + g.glyph_size / 2
        col = g.column("symbol")
        self.glyph(page, placement.symbol.glyph, g.column_x("symbol") + col.width / 2, glyph_cy)

        col = g.column("obligatory")
        dot = Glyph("circle", "obligatory_color")
        self.glyph(page, dot, g.column_x("obligatory") + col.width / 2, glyph_cy)

        self.picture(page, placement, step, image)

    def picture(self, page: int, placement: RowPlacement, step: StepRecord, image: Optional[ResolvedImage]) -> None:
        g = self.g
        col = g.column("pictures")
        pad = g.cell_padding
        cx = g.column_x("pictures") + col.width / 2
        label = TextStyle(g.bold_font_name, g.body_size, self.body.color, "center")
        self.lines(page, cx, placement.top + pad, [f"{placement.step_index + 1}.1"], label)

        box_top = placement.top + pad + g.image_label_height
        box_h = min(g.image_height, placement.height - 2 * pad - g.image_label_height)
        box_w = min(g.image_width, col.width - 2 * pad)
        box_x = cx - box_w / 2

        if image is None or image.width <= 0 or image.height <= 0:
            self.rect(page, box_x, box_top, box_w, box_h, self.placeholder)
            note = TextStyle(g.font_name, g.body_size, _s(self.style, "placeholder_text", "#646464"), "center")
            self.text(page, cx, box_top + box_h / 2 + g.body_size * PT_TO_MM * 0.35, config.IMAGE_MISSING_TEXT, note)
            return

        scale = min(box_w / image.width, box_h / image.height)
        w, h = image.width * scale, image.height * scale
        ref = step.image_ref if isinstance(step.image_ref, str) else None
        self.commands.append(
            DrawImage(page, cx - w / 2, box_top + (box_h - h) / 2, w, h, ref, image.data, image.mime)
        )


def emit(
    pages: Sequence[PageLayout],
    metadata: SopMetadata,
    steps: Sequence[StepRecord],
    geometry: PageGeometry | None = None,
    style: dict | None = None,
    images: Mapping[int, Optional[ResolvedImage]] | None = None,
) -> List[RenderCommand]:
    """
    Turn planned pages into drawing commands, ordered by page.

    ``images`` maps a step index to its resolved image, or to ``None`` when
    resolution failed. Steps that are missing from the mapping, or that have
    no image reference, get the placeholder box.
    """
    geometry = geometry or PageGeometry()
    style = config.load_style_preset() if style is None else style
    images = images or {}
    out = _Emitter(geometry, style, len(pages))
    for layout in pages:
        page = layout.page_index
        out.heading(page, metadata)
        out.metadata_grid(page, metadata)
        out.legend(page)
        out.table_head(page)
        for placement in layout.rows:
            step = steps[placement.step_index]
            image = images.get(placement.step_index) if step.image_ref is not None else None
            out.row(page, placement, step, image)
        out.footer(page, metadata)
    return out.commands
