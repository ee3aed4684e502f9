"""Tests for snapshot composition and preview resizing."""

import cv2
import numpy as np
import pytest

from kiosk.app import imaging
from kiosk.app.state import OutfitSelection
from tests.conftest import encode_jpeg

OUTFITS = OutfitSelection(
    head="male_head_1.png",
    top="male_top_1.png",
    bottom="male_bottom_1.png",
    shoes="male_shoes_1.png",
    left="male_left_1.png",
    right="male_right_1.png",
)

CANVAS_WIDTH = 3 * imaging.CELL_WIDTH + 2 * imaging.GAP + 2 * imaging.PADDING
CANVAS_HEIGHT = 3 * imaging.CELL_HEIGHT + 2 * imaging.GAP + 2 * imaging.PADDING


def _decode(data: bytes) -> np.ndarray:
    image = imaging.decode_image(data)
    assert image is not None
    return image


def _cell_center(row: int, col: int) -> tuple[int, int]:
    top = imaging.PADDING + row * (imaging.CELL_HEIGHT + imaging.GAP) + imaging.CELL_HEIGHT // 2
    left = imaging.PADDING + col * (imaging.CELL_WIDTH + imaging.GAP) + imaging.CELL_WIDTH // 2
    return top, left


def test_resize_preview_fits_inside_bounds() -> None:
    preview = imaging.resize_preview(encode_jpeg(width=600, height=600), max_width=300, max_height=400)

    assert _decode(preview).shape[:2] == (300, 300)


def test_resize_preview_never_upscales() -> None:
    preview = imaging.resize_preview(encode_jpeg(width=30, height=40))

    assert _decode(preview).shape[:2] == (40, 30)


@pytest.mark.parametrize("payload", [b"", b"garbage"])
def test_resize_preview_rejects_undecodable_input(payload: bytes) -> None:
    with pytest.raises(ValueError):
        imaging.resize_preview(payload)


def test_compose_snapshot_places_photo_and_available_art(tmp_path) -> None:
    red = np.zeros((60, 80, 3), dtype=np.uint8)
    red[:, :, 2] = 255
    cv2.imwrite(str(tmp_path / OUTFITS.shoes), red)
    (tmp_path / OUTFITS.top).write_bytes(b"corrupt")

    snapshot = imaging.compose_snapshot(encode_jpeg(value=0), OUTFITS, tmp_path, rotate=False)

    canvas = _decode(snapshot)
    assert canvas.shape[:2] == (CANVAS_HEIGHT, CANVAS_WIDTH)
    assert max(canvas[_cell_center(0, 1)].tolist()) < 16
    assert canvas[_cell_center(2, 2)].tolist() == [0, 0, 255]
    assert canvas[_cell_center(1, 1)].tolist() == [255, 255, 255]
    assert canvas[_cell_center(2, 0)].tolist() == [255, 255, 255]


def test_compose_snapshot_falls_back_on_bad_photo(tmp_path) -> None:
    snapshot = imaging.compose_snapshot(b"not-an-image", OUTFITS, tmp_path)

    assert _decode(snapshot).shape[:2] == (600, 800)


def test_transparent_art_is_flattened_onto_white(tmp_path) -> None:
    transparent = np.zeros((50, 50, 4), dtype=np.uint8)
    cv2.imwrite(str(tmp_path / OUTFITS.left), transparent)

    canvas = _decode(imaging.compose_snapshot(encode_jpeg(), OUTFITS, tmp_path))

    assert canvas[_cell_center(1, 0)].tolist() == [255, 255, 255]
