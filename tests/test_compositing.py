import logging

import numpy as np
import pytest

from pixel_buffer import PixelBuffer, DimensionMismatchError, InvalidBufferLayoutError
from mask_utils import rect_mask
from compositing import to_grayscale, detect_edges, composite, convolve3x3, LAPLACIAN_KERNEL


def test_grayscale_replicates_luminance(rgb_image):
    gray = to_grayscale(rgb_image)
    arr = gray.array
    assert gray.channels == 3
    assert np.array_equal(arr[..., 0], arr[..., 1])
    assert np.array_equal(arr[..., 1], arr[..., 2])
    r, g, b = rgb_image.pixel(3, 2)
    assert gray.pixel(3, 2)[0] == (299 * r + 587 * g + 114 * b + 500) // 1000


def test_grayscale_keeps_alpha():
    arr = np.zeros((2, 2, 4), dtype=np.uint8)
    arr[..., 0] = 255
    arr[..., 3] = [[0, 50], [100, 255]]
    gray = to_grayscale(PixelBuffer(arr))
    assert gray.pixel(1, 0) == (76, 76, 76, 50)
    assert np.array_equal(gray.array[..., 3], arr[..., 3])


def test_grayscale_is_idempotent(rgb_image):
    once = to_grayscale(rgb_image)
    assert to_grayscale(once) == once


def test_grayscale_does_not_touch_input(rgb_image):
    before = rgb_image.tobytes()
    to_grayscale(rgb_image)
    assert rgb_image.tobytes() == before


def test_grayscale_rejects_single_channel(square_mask):
    with pytest.raises(InvalidBufferLayoutError):
        to_grayscale(square_mask)


def test_laplacian_of_flat_field_is_zero():
    plane = np.full((5, 6), 200, dtype=np.uint8)
    assert not convolve3x3(plane, LAPLACIAN_KERNEL).any()


def test_edges_ring_on_rectangle_perimeter():
    mask = rect_mask(20, 16, (5, 4, 8, 6))
    edges = detect_edges(mask).plane
    assert set(np.unique(edges)) <= {0, 255}

    inside = np.zeros((16, 20), dtype=bool)
    inside[4:10, 5:13] = True
    interior = np.zeros_like(inside)
    interior[5:9, 6:12] = True
    perimeter = inside & ~interior

    assert (edges[perimeter] == 255).all()
    assert not edges[interior].any()
    assert not edges[~inside].any()


def test_edges_empty_and_full_masks():
    assert not detect_edges(PixelBuffer.filled(6, 6, 1, 0)).plane.any()
    # Replicated borders: a full mask has no boundary, not even at the image frame
    assert not detect_edges(PixelBuffer.filled(6, 6, 1, 255)).plane.any()


def test_edges_respect_threshold():
    arr = np.zeros((5, 5), dtype=np.uint8)
    arr[2, 2] = 6  # response 48
    assert not detect_edges(PixelBuffer(arr)).plane.any()
    arr[2, 2] = 7  # response 56
    assert detect_edges(PixelBuffer(arr)).pixel(2, 2) == (255,)


def test_composite_identical_sources_is_noop(rgb_image):
    mask = PixelBuffer(np.arange(16 * 12, dtype=np.uint8).reshape(12, 16))
    out = composite(rgb_image, rgb_image, mask)
    assert out.channels == 4
    assert np.array_equal(out.array[..., :3], rgb_image.array)
    assert (out.array[..., 3] == 255).all()


def test_composite_weight_extremes(rgb_image):
    derived = to_grayscale(rgb_image)
    zero = PixelBuffer.filled(16, 12, 1, 0)
    full = PixelBuffer.filled(16, 12, 1, 255)
    assert np.array_equal(composite(rgb_image, derived, zero).array[..., :3], rgb_image.array)
    assert np.array_equal(composite(rgb_image, derived, full).array[..., :3], derived.array)


def test_composite_rounds_to_nearest():
    original = PixelBuffer.filled(1, 1, 3, 0)
    derived = PixelBuffer.filled(1, 1, 3, 1)
    # 128/255 is just above one half, 127/255 just below
    assert composite(original, derived, PixelBuffer.filled(1, 1, 1, 128)).pixel(0, 0) == (1, 1, 1, 255)
    assert composite(original, derived, PixelBuffer.filled(1, 1, 1, 127)).pixel(0, 0) == (0, 0, 0, 255)


def test_composite_alpha_forced_opaque():
    arr = np.full((2, 2, 4), 10, dtype=np.uint8)
    arr[..., 3] = 0
    src = PixelBuffer(arr)
    out = composite(src, src, PixelBuffer.filled(2, 2, 1, 0))
    assert out.pixel(0, 0) == (10, 10, 10, 255)


def test_composite_paints_edges(rgb_image):
    mask = rect_mask(16, 12, (4, 3, 6, 5))
    edges = detect_edges(mask)
    out = composite(rgb_image, to_grayscale(rgb_image), mask, edge=edges, edge_color=(0, 0, 255))
    assert out.pixel(4, 3) == (0, 0, 255, 255)
    assert out.pixel(6, 5) == to_grayscale(rgb_image).pixel(6, 5) + (255,)
    assert out.pixel(0, 0) == rgb_image.pixel(0, 0) + (255,)


def test_composite_dimension_mismatch(rgb_image):
    with pytest.raises(DimensionMismatchError):
        composite(rgb_image, rgb_image, PixelBuffer.filled(15, 12, 1))
    with pytest.raises(DimensionMismatchError):
        composite(rgb_image, rgb_image, PixelBuffer.filled(16, 12, 1), edge=PixelBuffer.filled(16, 11, 1))


def test_composite_channel_contract(rgb_image):
    rgba = PixelBuffer.filled(16, 12, 4)
    mask = PixelBuffer.filled(16, 12, 1)
    with pytest.raises(InvalidBufferLayoutError):
        composite(rgb_image, rgba, mask)
    with pytest.raises(InvalidBufferLayoutError):
        composite(rgb_image, rgb_image, rgb_image)


def test_edges_and_composite_log_at_debug(rgb_image, caplog):
    mask = rect_mask(16, 12, (4, 3, 6, 5))
    with caplog.at_level(logging.DEBUG, logger="compositing"):
        edges = detect_edges(mask)
        composite(rgb_image, to_grayscale(rgb_image), mask, edge=edges)
    messages = [r.getMessage() for r in caplog.records if r.name == "compositing"]
    count = int(np.count_nonzero(edges.plane))
    assert f"Detected {count} edge pixels in 16x12 mask" in messages
    assert "Composited 16x12 buffer (edge overlay: True)" in messages
