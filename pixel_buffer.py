import logging
from io import BytesIO
import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Pillow modes for each supported channel count
CHANNEL_MODES = {1: 'L', 3: 'RGB', 4: 'RGBA'}
MODE_CHANNELS = {mode: channels for channels, mode in CHANNEL_MODES.items()}

# Full-scale value of high bit depth grayscale modes. 'I' is how Pillow opens
# 16-bit PNGs, so it is read as 16-bit too; 'F' images are taken as 0.0-1.0.
HIGH_DEPTH_PEAKS = {
    'I;16': 65535.0,
    'I;16B': 65535.0,
    'I;16L': 65535.0,
    'I;16N': 65535.0,
    'I': 65535.0,
    'F': 1.0,
}


class PixelPipelineError(Exception):
    """Base class for pixel pipeline failures"""


class InvalidImageError(PixelPipelineError):
    """Source image cannot be decoded"""


class DimensionMismatchError(PixelPipelineError):
    """Two buffers that must align have different dimensions"""


class InvalidBufferLayoutError(PixelPipelineError, ValueError):
    """Samples do not match the declared width, height and channels"""


class PixelBuffer:
    """Read-only 8-bit raster, stored row-major as (height, width, channels).

    Every transform in the pipeline returns a new PixelBuffer; the samples
    array is flagged non-writeable so a buffer never changes after creation.
    """

    def __init__(self, samples):
        samples = np.asarray(samples)
        if samples.ndim == 2:
            samples = samples[:, :, np.newaxis]
        if samples.ndim != 3:
            raise InvalidBufferLayoutError(f"Expected a 2D or 3D sample array, got {samples.ndim}D")
        height, width, channels = samples.shape
        if width <= 0 or height <= 0:
            raise InvalidBufferLayoutError(f"Dimensions must be positive, got {width}x{height}")
        if channels not in CHANNEL_MODES:
            raise InvalidBufferLayoutError(f"Unsupported channel count: {channels}")
        if samples.dtype != np.uint8:
            samples = np.clip(samples, 0, 255).astype(np.uint8)
        samples = np.array(samples, dtype=np.uint8, copy=True)
        samples.flags.writeable = False
        self._samples = samples

    @classmethod
    def from_bytes(cls, data, width, height, channels):
        """Wrap a flat row-major byte sequence"""
        if width <= 0 or height <= 0:
            raise InvalidBufferLayoutError(f"Dimensions must be positive, got {width}x{height}")
        if channels not in CHANNEL_MODES:
            raise InvalidBufferLayoutError(f"Unsupported channel count: {channels}")
        expected = width * height * channels
        if len(data) != expected:
            raise InvalidBufferLayoutError(
                f"Buffer length {len(data)} does not match {width}x{height}x{channels} = {expected}"
            )
        samples = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, channels)
        return cls(samples)

    @classmethod
    def filled(cls, width, height, channels, value=0):
        """Create a buffer where every sample has the same value"""
        if width <= 0 or height <= 0:
            raise InvalidBufferLayoutError(f"Dimensions must be positive, got {width}x{height}")
        return cls(np.full((height, width, channels), value, dtype=np.uint8))

    @property
    def width(self):
        return self._samples.shape[1]

    @property
    def height(self):
        return self._samples.shape[0]

    @property
    def channels(self):
        return self._samples.shape[2]

    @property
    def size(self):
        return (self.width, self.height)

    @property
    def array(self):
        """Read-only (height, width, channels) view of the samples"""
        return self._samples

    @property
    def plane(self):
        """Read-only (height, width) view; only valid for single-channel buffers"""
        self.require_channels(1)
        return self._samples[:, :, 0]

    def pixel(self, x, y):
        """Return the samples at (x, y) as a tuple"""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) is outside {self.width}x{self.height}")
        return tuple(int(v) for v in self._samples[y, x])

    def tobytes(self):
        return self._samples.tobytes()

    def __len__(self):
        return self._samples.size

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self._samples.shape == other._samples.shape and np.array_equal(self._samples, other._samples)

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height}x{self.channels})"

    def require_channels(self, *allowed):
        if self.channels not in allowed:
            raise InvalidBufferLayoutError(
                f"Expected {' or '.join(str(c) for c in allowed)} channel(s), got {self.channels}"
            )

    def require_same_size(self, other):
        if self.size != other.size:
            raise DimensionMismatchError(
                f"Buffer sizes differ: {self.width}x{self.height} vs {other.width}x{other.height}"
            )

    def to_image(self):
        """Convert to a PIL image"""
        if self.channels == 1:
            return Image.fromarray(self._samples[:, :, 0])
        return Image.fromarray(self._samples)


def open_image(source):
    """Open a path, raw bytes, file object or PIL image as a loaded PIL image"""
    if isinstance(source, Image.Image):
        return source
    try:
        if isinstance(source, (bytes, bytearray, memoryview)):
            img = Image.open(BytesIO(bytes(source)))
        else:
            img = Image.open(source)
        img.load()
        return img
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.error(f"Could not decode image: {str(e)}")
        raise InvalidImageError(f"Could not decode image: {str(e)}") from e


def normalize_mode(img):
    """Reduce arbitrary Pillow modes to L, RGB or RGBA"""
    if img.mode in MODE_CHANNELS:
        return img
    if img.mode == 'LA':
        return img.getchannel('L')
    if img.mode in HIGH_DEPTH_PEAKS:
        # Scale by the mode's range, never by the data
        arr = np.asarray(img, dtype=np.float64)
        peak = HIGH_DEPTH_PEAKS[img.mode]
        return Image.fromarray(np.clip(np.floor(arr * 255.0 / peak + 0.5), 0, 255).astype(np.uint8))
    has_alpha = 'A' in img.getbands() or 'transparency' in img.info
    return img.convert('RGBA' if has_alpha else 'RGB')


def decode_image(source, size=None):
    """Decode an image into a PixelBuffer, optionally resized to (width, height)"""
    img = normalize_mode(open_image(source))
    if size is not None:
        width, height = size
        if width <= 0 or height <= 0:
            raise InvalidBufferLayoutError(f"Target size must be positive, got {width}x{height}")
        if img.size != (width, height):
            img = img.resize((width, height), Image.BILINEAR)
    return PixelBuffer(np.asarray(img))


def encode_image(buffer, format="PNG"):
    """Encode a PixelBuffer into image file bytes"""
    out = BytesIO()
    buffer.to_image().save(out, format=format)
    return out.getvalue()
