from __future__ import annotations

import io
import struct
import tempfile
import zlib
from pathlib import Path

import pytest
from PIL import Image

from sopwriter import config
from sopwriter.models import reset_engine


@pytest.fixture
def out_dir():
    previous = config.OUT_DIR
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "out"
        config.set_out_dir(path)
        reset_engine()
        yield path
    config.set_out_dir(previous)
    reset_engine()


def make_png(width: int = 40, height: int = 20) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


def _chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def make_broken_png(width: int = 64, height: int = 64) -> bytes:
    """A PNG that opens fine but whose pixel data runs into a garbage chunk header."""
    data = make_png(width, height)
    pos, head, pixels = 8, data[:8], b""
    while pos < len(data):
        length = struct.unpack(">I", data[pos:pos + 4])[0]
        kind = data[pos + 4:pos + 8]
        if kind == b"IDAT":
            pixels += data[pos + 8:pos + 8 + length]
        elif not pixels:
            head += data[pos:pos + 12 + length]
        pos += 12 + length
    return head + _chunk(b"IDAT", pixels[: len(pixels) // 2]) + struct.pack(">I", 16) + b"\xa05\xa05" + bytes(20)
