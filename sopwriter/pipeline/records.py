from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class SymbolType(str, Enum):
    QUALITY = "quality"
    CORRECTNESS = "correctness"
    TIP = "tip"
    HAZARD = "hazard"


# URL or local path (str) or already-resolved image bytes
ImageRef = Union[str, bytes]


@dataclass(frozen=True)
class SopMetadata:
    title: str
    author: str = ""
    department: str = ""
    approver: str = ""
    created_date: str = ""
    approval_date: str = ""
    version: str = "1.0"


@dataclass(frozen=True)
class StepRecord:
    title: str
    description: str = ""
    symbol_type: Optional[SymbolType] = None
    reason_why: str = ""
    image_ref: Optional[ImageRef] = None


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    width: float


DEFAULT_COLUMNS: Tuple[Column, ...] = (
    Column("number", "No.", 10.0),
    Column("what", "Major steps (What)", 42.0),
    Column("how", "Key points (How)", 78.0),
    Column("symbol", "Symbol", 15.0),
    Column("why", "Reasons for key points (Why)", 56.0),
    Column("obligatory", "Obligatory", 18.0),
    Column("pictures", "Pictures", 58.0),
)


@dataclass(frozen=True)
class PageGeometry:
    """Page dimensions in millimetres, font sizes in points.

    Defaults describe an A4 landscape work-instruction sheet whose columns
    fill the width between the margins.
    """

    page_width: float = 297.0
    page_height: float = 210.0
    margin: float = 10.0
    title_height: float = 10.0
    meta_row_height: float = 9.0
    meta_rows: int = 3
    legend_height: float = 8.0
    table_head_height: float = 8.0
    footer_row_height: float = 8.0
    footer_rows: int = 2
    columns: Tuple[Column, ...] = DEFAULT_COLUMNS
    base_row_height: float = 16.0
    line_height: float = 3.6
    cell_padding: float = 2.0
    image_width: float = 40.0
    image_height: float = 26.0
    image_label_height: float = 4.0
    glyph_size: float = 4.0
    font_name: str = "Helvetica"
    bold_font_name: str = "Helvetica-Bold"
    body_size: float = 8.0
    heading_size: float = 14.0

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def header_height(self) -> float:
        return (
            self.title_height
            + self.meta_rows * self.meta_row_height
            + self.legend_height
            + self.table_head_height
        )

    @property
    def footer_height(self) -> float:
        return self.footer_rows * self.footer_row_height

    @property
    def content_top(self) -> float:
        return self.margin + self.header_height

    @property
    def usable_bottom(self) -> float:
        return self.page_height - self.margin - self.footer_height

    def column(self, key: str) -> Column:
        for column in self.columns:
            if column.key == key:
                return column
        raise KeyError(key)

    def column_x(self, key: str) -> float:
        x = self.margin
        for column in self.columns:
            if column.key == key:
                return x
            x += column.width
        raise KeyError(key)

    def text_width(self, key: str) -> float:
        return self.column(key).width - 2 * self.cell_padding


@dataclass(frozen=True)
class Glyph:
    shape: str  # circle | check | square_plus
    color_key: str


@dataclass(frozen=True)
class ResolvedSymbol:
    symbol_type: SymbolType
    glyph: Glyph


@dataclass(frozen=True)
class RowPlacement:
    step_index: int
    top: float
    height: float
    symbol: ResolvedSymbol

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(frozen=True)
class PageLayout:
    page_index: int
    rows: Tuple[RowPlacement, ...]

    @property
    def bottom(self) -> float:
        return self.rows[-1].bottom if self.rows else 0.0


@dataclass(frozen=True)
class ResolvedImage:
    data: bytes
    width: int
    height: int
    mime: str
