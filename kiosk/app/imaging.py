"""Snapshot composition and preview resizing with OpenCV."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from .state import OutfitSelection

logger = logging.getLogger(__name__)

CELL_WIDTH = 400
CELL_HEIGHT = 300
GRID_SIZE = 3
GAP = 10
PADDING = 20
BACKGROUND = (255, 255, 255)

LOGO_LEFT = "Logo_Left_static.png"
LOGO_RIGHT = "Logo_Right_static.png"

# (row, col) -> outfit slot; the user photo sits at (0, 1) between the logos.
_OUTFIT_CELLS = {
    (1, 0): "left",
    (1, 1): "top",
    (1, 2): "right",
    (2, 1): "bottom",
    (2, 2): "shoes",
}


def decode_image(data: bytes, flags: int = cv2.IMREAD_COLOR) -> Optional[np.ndarray]:
    if not data:
        return None
    buffer = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(buffer, flags)


def _fit_inside(image: np.ndarray, max_width: int, max_height: int, *, upscale: bool = True) -> np.ndarray:
    height, width = image.shape[:2]
    scale = min(max_width / width, max_height / height)
    if not upscale:
        scale = min(scale, 1.0)
    size = (max(1, round(width * scale)), max(1, round(height * scale)))
    if size == (width, height):
        return image
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    return cv2.resize(image, size, interpolation=interpolation)


def _flatten_alpha(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 3:
        return image
    color = image[:, :, :3].astype(np.float32)
    alpha = image[:, :, 3:4].astype(np.float32) / 255.0
    background = np.full_like(color, BACKGROUND, dtype=np.float32)
    return (color * alpha + background * (1.0 - alpha)).astype(np.uint8)


def _cell_origin(row: int, col: int) -> Tuple[int, int]:
    return PADDING + row * (CELL_HEIGHT + GAP), PADDING + col * (CELL_WIDTH + GAP)


def _paste(canvas: np.ndarray, image: np.ndarray, row: int, col: int) -> None:
    fitted = _fit_inside(_flatten_alpha(image), CELL_WIDTH, CELL_HEIGHT)
    height, width = fitted.shape[:2]
    top, left = _cell_origin(row, col)
    top += (CELL_HEIGHT - height) // 2
    left += (CELL_WIDTH - width) // 2
    canvas[top : top + height, left : left + width] = fitted


def _load_asset(path: Path) -> Optional[np.ndarray]:
    if not path.is_file():
        return None
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        logger.warning("Unreadable outfit asset %s", path.name)
    return image


def _encode_png(image: np.ndarray) -> bytes:
    success, encoded = cv2.imencode(".png", image)
    if not success:
        raise ValueError("png_encode_failed")
    return encoded.tobytes()


def fallback_snapshot() -> bytes:
    canvas = np.full((600, 800, 3), 240, dtype=np.uint8)
    cv2.putText(canvas, "Superstar Experience", (190, 290), cv2.FONT_HERSHEY_SIMPLEX, 1.2, (51, 51, 51), 2, cv2.LINE_AA)
    cv2.putText(canvas, "Thank you for your visit!", (260, 350), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (102, 102, 102), 1, cv2.LINE_AA)
    return _encode_png(canvas)


def compose_snapshot(
    photo: bytes,
    outfits: OutfitSelection,
    outfits_dir: Path,
    *,
    rotate: bool = True,
) -> bytes:
    """Lay the visitor photo and outfit art out on a 3x3 grid and return PNG bytes.

    Row 0 holds the left logo, the photo and the right logo; rows 1 and 2 hold
    the outfit art with the bottom-left cell left blank. Missing art leaves its
    cell empty. An undecodable photo yields a generic placeholder image.
    """

    try:
        user_image = decode_image(photo)
        if user_image is None:
            raise ValueError("photo_decode_failed")
        if rotate:
            user_image = cv2.rotate(user_image, cv2.ROTATE_90_COUNTERCLOCKWISE)

        span = GRID_SIZE * CELL_WIDTH + (GRID_SIZE - 1) * GAP + 2 * PADDING
        depth = GRID_SIZE * CELL_HEIGHT + (GRID_SIZE - 1) * GAP + 2 * PADDING
        canvas = np.full((depth, span, 3), BACKGROUND, dtype=np.uint8)

        directory = Path(outfits_dir)
        for (row, col), name in (((0, 0), LOGO_LEFT), ((0, 2), LOGO_RIGHT)):
            logo = _load_asset(directory / name)
            if logo is not None:
                _paste(canvas, logo, row, col)

        _paste(canvas, user_image, 0, 1)

        for (row, col), slot in _OUTFIT_CELLS.items():
            asset = _load_asset(directory / getattr(outfits, slot))
            if asset is not None:
                _paste(canvas, asset, row, col)

        return _encode_png(canvas)
    except (cv2.error, ValueError):
        logger.exception("Snapshot composition failed; using fallback image")
        return fallback_snapshot()


def resize_preview(photo: bytes, max_width: int = 300, max_height: int = 400) -> bytes:
    """Shrink the visitor photo for monitor display and re-encode it as JPEG."""

    image = decode_image(photo)
    if image is None:
        raise ValueError("photo_decode_failed")
    fitted = _fit_inside(image, max_width, max_height, upscale=False)
    success, encoded = cv2.imencode(".jpg", fitted, [int(cv2.IMWRITE_JPEG_QUALITY), 80])
    if not success:
        raise ValueError("jpeg_encode_failed")
    return encoded.tobytes()


__all__ = ["compose_snapshot", "decode_image", "fallback_snapshot", "resize_preview"]
