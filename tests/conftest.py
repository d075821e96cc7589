import base64
from io import BytesIO
from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from pixel_buffer import PixelBuffer


def png_bytes(img):
    out = BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


RESULT_PNG = png_bytes(Image.new("RGB", (8, 8), (10, 200, 30)))


class FakeImages:
    """Stands in for client.images; records each edit call"""

    def __init__(self, fail_on=(), empty=False):
        self.calls = []
        self.fail_on = set(fail_on)
        self.empty = empty

    def edit(self, **kwargs):
        self.calls.append(kwargs)
        if kwargs.get("prompt") in self.fail_on:
            raise RuntimeError("rate limited")
        item = SimpleNamespace(
            b64_json=None if self.empty else base64.b64encode(RESULT_PNG).decode("utf-8"),
            url=None,
            revised_prompt="revised: " + kwargs["prompt"],
        )
        return SimpleNamespace(data=[item])


class FakeClient:
    def __init__(self, fail_on=(), empty=False):
        self.images = FakeImages(fail_on, empty)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def rgb_image():
    """16x12 RGB image with distinct colours per pixel"""
    ys, xs = np.mgrid[:12, :16]
    arr = np.stack([xs * 15, ys * 20, (xs + ys) * 7], axis=-1).astype(np.uint8)
    return PixelBuffer(arr)


@pytest.fixture
def square_mask():
    """4x4 mask with a white 2x2 square at rows 1-2, cols 1-2"""
    arr = np.zeros((4, 4), dtype=np.uint8)
    arr[1:3, 1:3] = 255
    return PixelBuffer(arr)


@pytest.fixture
def scene_files(tmp_path):
    """Small image + mask pair on disk"""
    image = Image.new("RGB", (32, 24), (200, 120, 40))
    mask_arr = np.zeros((24, 32), dtype=np.uint8)
    mask_arr[6:18, 8:24] = 255
    image_path = tmp_path / "scene.png"
    mask_path = tmp_path / "mask.png"
    image.save(image_path)
    Image.fromarray(mask_arr).save(mask_path)
    return str(image_path), str(mask_path)
