from __future__ import annotations

from datetime import date
from pathlib import Path

import fitz
import pytest
from conftest import make_broken_png
from sqlmodel import select

from sopwriter.errors import ExportFailed, SopNotFound, SopValidationError
from sopwriter.models import ExportStatus, Sop, SopExport, get_session
from sopwriter.pipeline import export as export_module
from sopwriter.pipeline.export import build_document, export_sop, sop_filename
from sopwriter.pipeline.ingest import delete_sop, get_sop, list_sops, save_sop, update_sop


METADATA = {
    "title": "Assembly A",
    "author": "R. Diaz",
    "department": "Fabrication",
    "createdDate": "2024-03-01",
}


def _steps(count: int, lines: int = 1) -> list[dict]:
    return [
        {"title": f"Step {n}", "description": "\n".join(f"Point {k}" for k in range(lines))}
        for n in range(count)
    ]


def test_filename_from_title() -> None:
    assert sop_filename("Assembly A") == "assembly_a_sop.pdf"
    assert sop_filename("Weld/Grind: Line #2", "html") == "weld_grind__line__2_sop.html"


def test_pdf_has_one_page_per_layout_page(out_dir: Path) -> None:
    output = out_dir / "doc.pdf"
    result = build_document(METADATA, _steps(30, lines=6), "pdf", output)

    assert result.page_count > 1
    assert output.read_bytes().startswith(b"%PDF")
    with fitz.open(output) as doc:
        assert doc.page_count == result.page_count
        assert "Work Instruction" in doc.load_page(0).get_text()


def test_html_export_has_page_sections(out_dir: Path) -> None:
    output = out_dir / "doc.html"
    result = build_document(METADATA, _steps(30, lines=6), "html", output)

    markup = output.read_text(encoding="utf-8")
    assert markup.count('<section class="page"') == result.page_count
    assert "Assembly A - SOP" in markup
    assert "@page" in markup


def test_refused_without_title_or_steps(out_dir: Path) -> None:
    output = out_dir / "doc.pdf"
    with pytest.raises(SopValidationError) as info:
        build_document({"title": " "}, _steps(2), "pdf", output)
    assert info.value.code == "TITLE_REQUIRED"

    with pytest.raises(SopValidationError) as info:
        build_document(METADATA, [{"title": ""}], "pdf", output)
    assert info.value.code == "STEP_REQUIRED"
    assert not output.exists()


def test_failed_image_does_not_abort_export(out_dir: Path, png_bytes: bytes) -> None:
    steps = [
        {"title": "Cut", "imageUrl": "https://example.com/cut.png"},
        {"title": "Drill", "imageUrl": "https://example.com/broken.png"},
        {"title": "Pack"},
    ]

    def resolver(ref):
        return None if "broken" in ref else png_bytes

    output = out_dir / "doc.pdf"
    result = build_document(METADATA, steps, "pdf", output, resolver=resolver)

    assert output.exists()
    assert result.image_count == 2
    assert result.missing_images == 1
    assert result.step_count == 3


def test_corrupt_image_or_raising_resolver_does_not_abort_export(out_dir: Path, png_bytes: bytes) -> None:
    steps = [
        {"title": "Cut", "imageUrl": "https://example.com/cut.png"},
        {"title": "Drill", "imageUrl": "https://example.com/corrupt.png"},
        {"title": "Weld", "imageUrl": "https://relay.example.com/weld.png"},
    ]

    def resolver(ref):
        if "relay" in ref:
            raise ConnectionError("relay down")
        return make_broken_png() if "corrupt" in ref else png_bytes

    for fmt in ("pdf", "html"):
        output = out_dir / f"doc.{fmt}"
        result = build_document(METADATA, steps, fmt, output, resolver=resolver)
        assert output.exists()
        assert (result.image_count, result.missing_images) == (3, 2)


def test_backend_failure_leaves_no_file(out_dir: Path, monkeypatch) -> None:
    def broken(commands, geometry, path, title, author):
        path.write_bytes(b"%PDF-partial")
        raise RuntimeError("disk full")

    monkeypatch.setitem(export_module.BACKENDS, "pdf", broken)
    output = out_dir / "doc.pdf"

    with pytest.raises(ExportFailed) as info:
        build_document(METADATA, _steps(3), "pdf", output)

    assert "disk full" in info.value.reason
    assert not output.exists()
    assert list(out_dir.iterdir()) == []


def test_export_records_outcome(out_dir: Path, monkeypatch) -> None:
    sop = save_sop(METADATA, _steps(4))

    result = export_sop(sop.id, "pdf")
    assert result.path.name == "assembly_a_sop.pdf"
    assert result.path.parent == out_dir / "exports"

    def broken(commands, geometry, path, title, author):
        raise OSError("read-only")

    monkeypatch.setitem(export_module.BACKENDS, "html", broken)
    with pytest.raises(ExportFailed):
        export_sop(sop.id, "html")

    with get_session() as session:
        records = list(session.exec(select(SopExport).where(SopExport.sop_id == sop.id).order_by(SopExport.id)))
    assert [r.status for r in records] == [ExportStatus.READY, ExportStatus.FAILED]
    assert records[0].path == "exports/assembly_a_sop.pdf"
    assert records[0].page_count == 1
    assert records[1].fail_code == "EXPORT_FAILED"


def test_same_sop_exports_identically(out_dir: Path) -> None:
    first = build_document(METADATA, _steps(12, lines=3), "html", out_dir / "a.html")
    second = build_document(METADATA, _steps(12, lines=3), "html", out_dir / "b.html")
    assert first.path.read_text(encoding="utf-8") == second.path.read_text(encoding="utf-8")


def test_crud_round(out_dir: Path) -> None:
    first = save_sop(METADATA, _steps(2) + [{"title": "  "}])
    second = save_sop({"title": "Packing"}, [{"title": "Box", "symbolType": "hazard", "reasonWhy": "Sharp"}])

    assert [sop.id for sop in list_sops()] == [second.id, first.id]

    sop, steps = get_sop(first.id)
    assert sop.version == "1.0"
    assert [step.title for step in steps] == ["Step 0", "Step 1"]

    update_sop(first.id, {"title": "Assembly B", "version": "2.0"}, [{"title": "Only step"}])
    sop, steps = get_sop(first.id)
    assert (sop.title, sop.version) == ("Assembly B", "2.0")
    assert [step.title for step in steps] == ["Only step"]

    _, packed = get_sop(second.id)
    assert packed[0].reason_why == "Sharp"

    with pytest.raises(SopValidationError):
        update_sop(first.id, {"title": "Assembly B"}, [])

    delete_sop(first.id)
    with pytest.raises(SopNotFound):
        get_sop(first.id)
    assert [sop.id for sop in list_sops()] == [second.id]


def test_created_timestamps_are_timezone_aware() -> None:
    assert Sop(title="Assembly A").created_at.tzinfo is not None
    assert SopExport(sop_id=1, format="pdf").created_at.tzinfo is not None


def test_image_names_follow_step_position(out_dir: Path) -> None:
    sop = save_sop(
        METADATA,
        [
            {"title": "Inspect", "imageUrl": "https://example.com/1.png", "imageName": "first.png"},
            {"title": ""},
            {"title": "Inspect", "imageUrl": "https://example.com/2.png", "imageName": "second.png"},
            {"title": "Pack"},
        ],
    )

    _, steps = get_sop(sop.id)
    assert [(step.title, step.image_name) for step in steps] == [
        ("Inspect", "first.png"),
        ("Inspect", "second.png"),
        ("Pack", ""),
    ]


def test_new_sop_gets_todays_created_date(out_dir: Path) -> None:
    sop = save_sop({"title": "Packing"}, [{"title": "Box"}])
    assert sop.created_date == date.today().isoformat()

    kept = save_sop(METADATA, [{"title": "Box"}])
    assert kept.created_date == "2024-03-01"
