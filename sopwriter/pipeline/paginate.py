from __future__ import annotations

import logging
from typing import Callable, List, Sequence, Tuple

from .measure import estimate_row_height
from .records import PageGeometry, PageLayout, RowPlacement, StepRecord
from .symbols import resolve_symbol


logger = logging.getLogger(__name__)

RowHeightFn = Callable[[StepRecord, float, PageGeometry], float]


def place_row(
    rows: List[RowPlacement],
    cursor: float,
    height: float,
    geometry: PageGeometry,
) -> Tuple[bool, float]:
    """
    Decide where a row of ``height`` goes given the open page's rows and the
    cursor. Returns ``(new_page, top)``. A page that has no rows yet always
    takes the row, even when it is taller than the usable area.
    """
    if rows and cursor + height > geometry.usable_bottom:
        return True, geometry.content_top
    return False, cursor


def paginate(
    steps: Sequence[StepRecord],
    geometry: PageGeometry | None = None,
    row_height: RowHeightFn = estimate_row_height,
) -> List[PageLayout]:
    geometry = geometry or PageGeometry()
    width = geometry.text_width("how")

    pages: List[PageLayout] = []
    rows: List[RowPlacement] = []
    cursor = geometry.content_top

    for index, step in enumerate(steps):
        height = row_height(step, width, geometry)
        new_page, top = place_row(rows, cursor, height, geometry)
        if new_page:
            pages.append(PageLayout(page_index=len(pages), rows=tuple(rows)))
            rows = []
        if top + height > geometry.usable_bottom:
            logger.warning("Step %d is taller than a page (%.1fmm)", index + 1, height)
        rows.append(
            RowPlacement(
                step_index=index,
                top=top,
                height=height,
                symbol=resolve_symbol(step, index),
            )
        )
        cursor = top + height

    if rows:
        pages.append(PageLayout(page_index=len(pages), rows=tuple(rows)))
    return pages
