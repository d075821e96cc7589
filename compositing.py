import logging
import numpy as np

from pixel_buffer import PixelBuffer
from mask_utils import luminance

logger = logging.getLogger(__name__)

# Discrete Laplacian: centre +8, eight neighbours -1
LAPLACIAN_KERNEL = np.array([
    [-1, -1, -1],
    [-1,  8, -1],
    [-1, -1, -1],
], dtype=np.int32)

EDGE_THRESHOLD = 50
EDGE_COLOR = (255, 0, 0)


def to_grayscale(buffer):
    """Replace R, G and B with the pixel's luminance; alpha passes through"""
    buffer.require_channels(3, 4)
    arr = buffer.array
    gray = luminance(arr[..., :3])
    out = np.array(arr, copy=True)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    return PixelBuffer(out)


def convolve3x3(plane, kernel):
    """Convolve a 2D plane with a 3x3 kernel, replicating border samples"""
    padded = np.pad(plane.astype(np.int32), 1, mode='edge')
    height, width = plane.shape
    response = np.zeros((height, width), dtype=np.int32)
    for dy in range(3):
        for dx in range(3):
            weight = int(kernel[dy, dx])
            if weight:
                response += weight * padded[dy:dy + height, dx:dx + width]
    return response


def detect_edges(mask, threshold=EDGE_THRESHOLD):
    """Binary boundary of the mask's edit region.

    The Laplacian response is clamped to 0..255 the way an 8-bit filter
    output would be, so only pixels on the bright side of a transition
    respond. The ring therefore sits on or inside the edit region. Image
    border pixels see replicated neighbours and are not reliably classified.
    """
    mask.require_channels(1)
    response = np.clip(convolve3x3(mask.plane, LAPLACIAN_KERNEL), 0, 255)
    edges = np.where(response > threshold, 255, 0).astype(np.uint8)
    logger.debug(f"Detected {int(np.count_nonzero(edges))} edge pixels in {mask.width}x{mask.height} mask")
    return PixelBuffer(edges)


def composite(original, derived, mask, edge=None, edge_color=EDGE_COLOR):
    """Blend original towards derived with the mask as weight.

    Per pixel w = mask / 255 and out = round(original * (1 - w) + derived * w),
    rounding half up. Pixels set in the optional edge buffer are painted with
    edge_color. The result is RGBA and fully opaque.
    """
    original.require_channels(3, 4)
    derived.require_channels(3, 4)
    mask.require_channels(1)
    original.require_same_size(derived)
    original.require_same_size(mask)
    if original.channels != derived.channels:
        derived.require_channels(original.channels)

    weight = mask.plane.astype(np.float64)[..., np.newaxis] / 255.0
    src = original.array[..., :3].astype(np.float64)
    dst = derived.array[..., :3].astype(np.float64)
    blended = np.floor(src * (1.0 - weight) + dst * weight + 0.5)

    out = np.empty((original.height, original.width, 4), dtype=np.uint8)
    out[..., :3] = np.clip(blended, 0, 255).astype(np.uint8)
    out[..., 3] = 255

    if edge is not None:
        edge.require_channels(1)
        original.require_same_size(edge)
        out[edge.plane != 0, :3] = edge_color

    logger.debug(f"Composited {original.width}x{original.height} buffer (edge overlay: {edge is not None})")
    return PixelBuffer(out)
