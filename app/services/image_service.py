"""Resize and re-encode uploaded photos before they are stored."""
from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from app.core.errors import ValidationError


@dataclass(frozen=True)
class ImagePolicy:
    max_width: int = 1920
    jpeg_quality: int = 85
    # PNGs above this many bytes (as uploaded) are converted to JPEG
    png_to_jpeg_threshold: int = 2 * 1024 * 1024
    max_pixels: int = 40_000_000


def _flatten(img: Image.Image) -> Image.Image:
    """JPEG has no alpha: paste transparent images onto white."""
    if img.mode in ("RGB", "L"):
        return img
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    return img.convert("RGB")


def _fit_width(img: Image.Image, max_width: int) -> Image.Image:
    if img.width <= max_width:
        return img
    height = max(1, round(img.height * max_width / img.width))
    return img.resize((max_width, height), Image.Resampling.LANCZOS)


def normalize_image(content: bytes, ext: str, policy: ImagePolicy) -> Tuple[bytes, str]:
    """
    Returns (encoded bytes, extension to store under).
    jpg/jpeg keep their extension; png stays png unless the upload exceeded
    the threshold, then it becomes jpg.
    """
    ext = ext.lower()
    try:
        img = Image.open(io.BytesIO(content))
    except Image.DecompressionBombError as exc:
        raise ValidationError("Image dimensions are too large.") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Uploaded file is not a valid image.") from exc

    # header only so far; refuse before any pixel data is decoded
    if img.width * img.height > policy.max_pixels:
        raise ValidationError("Image dimensions are too large.")

    try:
        img.load()
    except OSError as exc:
        raise ValidationError("Uploaded file is not a valid image.") from exc

    img = _fit_width(img, policy.max_width)

    as_jpeg = ext in ("jpg", "jpeg") or (
        ext == "png" and len(content) > policy.png_to_jpeg_threshold
    )

    out = io.BytesIO()
    if as_jpeg:
        _flatten(img).save(out, format="JPEG", quality=policy.jpeg_quality)
        return out.getvalue(), ("jpg" if ext == "png" else ext)

    img.save(out, format="PNG", optimize=True)
    return out.getvalue(), "png"
