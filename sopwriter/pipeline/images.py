from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Union
from urllib.parse import quote

import httpx
from PIL import Image, UnidentifiedImageError

from .. import config
from .records import ImageRef, ResolvedImage, StepRecord


logger = logging.getLogger(__name__)

# injected resolvers may hand back raw bytes, which are decoded here
ImageResolver = Callable[[ImageRef], Union[bytes, ResolvedImage, None]]

_MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "BMP": "image/bmp",
}


def decode_image(data: bytes) -> ResolvedImage:
    """Check ``data`` is a readable image and record its pixel size."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        width, height = img.size
        mime = _MIME_BY_FORMAT.get(img.format or "", "application/octet-stream")
    return ResolvedImage(data=data, width=width, height=height, mime=mime)


def proxied_url(url: str, proxy: str | None) -> str:
    if not proxy:
        return url
    return proxy.format(url=quote(url, safe=""))


def fetch_image_bytes(url: str, client: httpx.Client, proxy: str | None = None) -> bytes:
    response = client.get(proxied_url(url, proxy))
    response.raise_for_status()
    return response.content


def resolve_image(
    ref: ImageRef,
    client: httpx.Client | None = None,
    proxy: str | None = None,
) -> Optional[ResolvedImage]:
    """
    Resolve one step image. Returns ``None`` instead of raising when the
    reference cannot be fetched, read or decoded.
    """
    try:
        if isinstance(ref, (bytes, bytearray)):
            data = bytes(ref)
        elif ref.startswith(("http://", "https://")):
            if client is None:
                with httpx.Client(timeout=config.IMAGE_TIMEOUT, follow_redirects=True) as own:
                    data = fetch_image_bytes(ref, own, proxy)
            else:
                data = fetch_image_bytes(ref, client, proxy)
        else:
            data = Path(ref).read_bytes()
        return decode_image(data)
    except httpx.HTTPError as exc:
        logger.warning("Image fetch failed for %s: %s", _describe(ref), exc)
    except OSError as exc:
        # UnidentifiedImageError is an OSError too
        kind = "decode" if isinstance(exc, UnidentifiedImageError) else "read"
        logger.warning("Image %s failed for %s: %s", kind, _describe(ref), exc)
    except (ValueError, Image.DecompressionBombError) as exc:
        logger.warning("Image rejected for %s: %s", _describe(ref), exc)
    except SyntaxError as exc:
        # Pillow reports corrupt chunks this way, e.g. "broken PNG file"
        logger.warning("Image decode failed for %s: %s", _describe(ref), exc)
    return None


def _describe(ref: ImageRef) -> str:
    if isinstance(ref, (bytes, bytearray)):
        return f"<{len(ref)} bytes>"
    return ref


def _resolve_with(resolver: ImageResolver, ref: ImageRef) -> Optional[ResolvedImage]:
    try:
        result = resolver(ref)
    except Exception as exc:
        logger.warning("Image resolver failed for %s: %s", _describe(ref), exc)
        return None
    if isinstance(result, (bytes, bytearray)):
        return resolve_image(result)
    return result


def resolve_images(
    steps: Sequence[StepRecord],
    limit: int | None = None,
    proxy: str | None = None,
    resolver: ImageResolver | None = None,
) -> Dict[int, Optional[ResolvedImage]]:
    """
    Resolve every step image with at most ``limit`` fetches in flight.
    Keys are step indexes; steps without an image reference are left out.
    """
    wanted = [(index, step.image_ref) for index, step in enumerate(steps) if step.image_ref is not None]
    if not wanted:
        return {}

    limit = max(1, limit or config.IMAGE_FETCH_LIMIT)
    proxy = proxy if proxy is not None else config.IMAGE_PROXY

    with httpx.Client(timeout=config.IMAGE_TIMEOUT, follow_redirects=True) as client:
        if resolver is None:
            def resolver(ref: ImageRef) -> Optional[ResolvedImage]:
                return resolve_image(ref, client=client, proxy=proxy)

        with ThreadPoolExecutor(max_workers=min(limit, len(wanted))) as pool:
            futures = {index: pool.submit(_resolve_with, resolver, ref) for index, ref in wanted}
            results = {index: future.result() for index, future in futures.items()}

    missing = sum(1 for image in results.values() if image is None)
    if missing:
        logger.warning("%d of %d step images could not be resolved", missing, len(results))
    return results
