import logging
import numpy as np
from PIL import Image

from pixel_buffer import (
    PixelBuffer,
    InvalidBufferLayoutError,
    open_image,
    normalize_mode,
)

logger = logging.getLogger(__name__)

# ITU-R 601 luma weights, in thousandths
LUMA_WEIGHTS = (299, 587, 114)

EDIT_VALUE = 255
KEEP_VALUE = 0


def luminance(rgb):
    """Integer luma of an (..., 3) array, rounded half up"""
    rgb = np.asarray(rgb, dtype=np.int32)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    wr, wg, wb = LUMA_WEIGHTS
    return ((wr * r + wg * g + wb * b + 500) // 1000).astype(np.uint8)


def normalize_mask(mask_source, width, height):
    """Resample a mask to width x height and reduce it to one intensity channel.

    Resampling uses Pillow's bilinear filter. Single-channel masks keep their
    values; colour masks go through luminance(). Any alpha channel of the mask
    is ignored. The result is clamped to [0, 255].
    """
    if width <= 0 or height <= 0:
        raise InvalidBufferLayoutError(f"Target size must be positive, got {width}x{height}")

    img = normalize_mode(open_image(mask_source))
    if img.mode == 'RGBA':
        # Resampling RGBA premultiplies alpha, which would darken transparent areas
        img = img.convert('RGB')
    if img.size != (width, height):
        img = img.resize((width, height), Image.BILINEAR)

    arr = np.asarray(img)
    if arr.ndim == 3:
        arr = luminance(arr[..., :3])
    arr = np.clip(arr, 0, 255).astype(np.uint8)
    logger.debug(f"Normalized mask to {width}x{height}")
    return PixelBuffer(arr)


def to_alpha_mask(mask):
    """Map a mask to RGBA: RGB = 0 and alpha = 255 - mask.

    White (edit) becomes transparent, black (keep) becomes opaque, and
    partial mask values give partial alpha.
    """
    mask.require_channels(1)
    rgba = np.zeros((mask.height, mask.width, 4), dtype=np.uint8)
    rgba[:, :, 3] = 255 - mask.plane
    return PixelBuffer(rgba)


def _check_size(width, height):
    if width <= 0 or height <= 0:
        raise InvalidBufferLayoutError(f"Mask dimensions must be positive, got {width}x{height}")


def rect_mask(width, height, rect):
    """Mask with [x, x+w) x [y, y+h) set to 255"""
    _check_size(width, height)
    x, y, w, h = rect
    ys, xs = np.ogrid[:height, :width]
    inside = (xs >= x) & (xs < x + w) & (ys >= y) & (ys < y + h)
    return PixelBuffer(np.where(inside, EDIT_VALUE, KEEP_VALUE).astype(np.uint8))


def circle_mask(width, height, circle):
    """Mask with every pixel within radius of (cx, cy) set to 255, boundary included"""
    _check_size(width, height)
    cx, cy, radius = circle
    ys, xs = np.ogrid[:height, :width]
    dist = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2)
    return PixelBuffer(np.where(dist <= radius, EDIT_VALUE, KEEP_VALUE).astype(np.uint8))
