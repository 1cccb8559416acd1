from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Optional
import json

from .pipeline.records import PageGeometry


BASE_DIR = Path(__file__).resolve().parents[1]
OUT_DIR = BASE_DIR / "out"
DB_PATH = OUT_DIR / "sops.db"
EXPORT_DIR_NAME = "exports"
STYLE_PRESET_PATH = Path(__file__).resolve().parent / "assets" / "sop_styles.json"

DEFAULT_VERSION = "1.0"

# concurrent image fetches per export
IMAGE_FETCH_LIMIT = 4
IMAGE_TIMEOUT = 10.0
# relay template, e.g. "https://host/api/image-proxy?url={url}"
IMAGE_PROXY: Optional[str] = None

DOCUMENT_HEADING = "Work Instruction"
AREA_TEXT = "Production"
TOOLS_TEXT = "Required equipment: Standard safety equipment"
IMAGE_MISSING_TEXT = "Image not available"


def load_style_preset() -> dict:
    with STYLE_PRESET_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def page_geometry(preset: dict | None = None) -> PageGeometry:
    preset = load_style_preset() if preset is None else preset
    overrides = preset.get("geometry") or {}
    known = {f.name for f in fields(PageGeometry)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown geometry keys: {', '.join(sorted(unknown))}")
    return PageGeometry(**overrides)


def export_dir() -> Path:
    return OUT_DIR / EXPORT_DIR_NAME


def set_out_dir(path: Path) -> None:
    global OUT_DIR, DB_PATH
    OUT_DIR = path
    DB_PATH = OUT_DIR / "sops.db"
