from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF


def _render_page_to_png(doc: fitz.Document, page_index: int, out_path: Path, min_px: int = 1600) -> None:
    page = doc.load_page(page_index)

    # scale so the short side of the PNG is at least min_px
    rect = page.rect
    short_side = min(rect.width, rect.height)
    zoom = max(2.0, min_px / float(short_side))
    mat = fitz.Matrix(zoom, zoom)

    pix = page.get_pixmap(matrix=mat, alpha=False)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pix.save(str(out_path))


def render_preview(pdf_path: Path, out_path: Path | None = None, page_index: int = 0) -> Path:
    """Rasterise one page of an exported SOP for thumbnails and quick review."""
    out_path = out_path or pdf_path.with_name(f"{pdf_path.stem}_p{page_index + 1}.png")
    with fitz.open(pdf_path) as doc:
        if not 0 <= page_index < doc.page_count:
            raise ValueError(f"Page {page_index + 1} out of range (document has {doc.page_count})")
        _render_page_to_png(doc, page_index, out_path)
    return out_path
