"""
RGBA -> target color model conversion.

Every converter is vectorised over the whole image: it takes the R, G, B and A
planes as float64 arrays in [0, 255] and returns a stack of output channels.
Float outputs feed the normalizer directly; byte outputs are rounded half away
from zero and clamped to [0, 255].
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from .errors import InvalidInput
from .rounding import to_uint8
from .types import PixelBuffer, parse_color_format

CHANNEL_COUNTS: Dict[str, int] = {
    "rgb": 3,
    "rgba": 4,
    "bgr": 3,
    "bgra": 4,
    "grayscale": 1,
    "hsv": 3,
    "hsl": 3,
    "lab": 3,
    "yuv": 3,
    "ycbcr": 3,
}

# ITU-R BT.601 luma
LUMA_R, LUMA_G, LUMA_B = 0.299, 0.587, 0.114

# sRGB -> XYZ (D65)
_RGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ],
    dtype=np.float64,
)
_D65_WHITE = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)


def channel_count(color_format: str) -> int:
    return CHANNEL_COUNTS[parse_color_format(color_format)]


def _luma(r, g, b):
    return LUMA_R * r + LUMA_G * g + LUMA_B * b


def _hue_degrees(rf, gf, bf, max_val, delta):
    nonzero = delta > 0
    safe = np.where(nonzero, delta, 1.0)
    h_r = np.mod((gf - bf) / safe, 6.0)
    h_g = (bf - rf) / safe + 2.0
    h_b = (rf - gf) / safe + 4.0
    hue = np.where(max_val == rf, h_r, np.where(max_val == gf, h_g, h_b)) * 60.0
    hue = np.where(nonzero, hue, 0.0)
    # mod can land exactly on 6.0 for tiny negative ratios
    return np.where(hue >= 360.0, hue - 360.0, hue)


def _hsv(r, g, b):
    rf, gf, bf = r / 255.0, g / 255.0, b / 255.0
    max_val = np.maximum(np.maximum(rf, gf), bf)
    min_val = np.minimum(np.minimum(rf, gf), bf)
    delta = max_val - min_val
    s = np.where(max_val > 0, delta / np.where(max_val > 0, max_val, 1.0), 0.0)
    return _hue_degrees(rf, gf, bf, max_val, delta), s * 255.0, max_val * 255.0


def _hsl(r, g, b):
    rf, gf, bf = r / 255.0, g / 255.0, b / 255.0
    max_val = np.maximum(np.maximum(rf, gf), bf)
    min_val = np.minimum(np.minimum(rf, gf), bf)
    delta = max_val - min_val
    lightness = (max_val + min_val) / 2.0
    denom = np.where(lightness <= 0.5, max_val + min_val, 2.0 - max_val - min_val)
    s = np.where(delta > 0, delta / np.where(denom > 0, denom, 1.0), 0.0)
    return _hue_degrees(rf, gf, bf, max_val, delta), s * 255.0, lightness * 255.0


def _srgb_to_linear(c):
    c = c / 255.0
    return np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92)


def _lab_f(t):
    return np.where(t > 0.008856, np.cbrt(t), 7.787 * t + 16.0 / 116.0)


def _lab(r, g, b):
    linear = np.stack([_srgb_to_linear(r), _srgb_to_linear(g), _srgb_to_linear(b)], axis=-1)
    xyz = linear @ _RGB_TO_XYZ.T / _D65_WHITE
    fx, fy, fz = _lab_f(xyz[..., 0]), _lab_f(xyz[..., 1]), _lab_f(xyz[..., 2])
    lightness = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b_star = 200.0 * (fy - fz)
    # a/b are shifted into the 0-255 range; L stays in [0, 100]
    return lightness, a + 128.0, b_star + 128.0


def _yuv(r, g, b):
    y = _luma(r, g, b)
    u = -0.14713 * r - 0.28886 * g + 0.436 * b + 128.0
    v = 0.615 * r - 0.51499 * g - 0.10001 * b + 128.0
    return y, u, v


def _ycbcr(r, g, b):
    y = 16.0 + (65.481 * r + 128.553 * g + 24.966 * b) / 255.0
    cb = 128.0 + (-37.797 * r - 74.203 * g + 112.0 * b) / 255.0
    cr = 128.0 + (112.0 * r - 93.786 * g - 18.214 * b) / 255.0
    return y, cb, cr


_CONVERTERS: Dict[str, Callable] = {
    "rgb": lambda r, g, b, a: (r, g, b),
    "rgba": lambda r, g, b, a: (r, g, b, a),
    "bgr": lambda r, g, b, a: (b, g, r),
    "bgra": lambda r, g, b, a: (b, g, r, a),
    "grayscale": lambda r, g, b, a: (_luma(r, g, b),),
    "hsv": lambda r, g, b, a: _hsv(r, g, b),
    "hsl": lambda r, g, b, a: _hsl(r, g, b),
    "lab": lambda r, g, b, a: _lab(r, g, b),
    "yuv": lambda r, g, b, a: _yuv(r, g, b),
    "ycbcr": lambda r, g, b, a: _ycbcr(r, g, b),
}


def _to_byte_range(color_format: str, planes):
    if color_format in ("hsv", "hsl"):
        h, s, v = planes
        return h / 2.0, s, v
    if color_format == "lab":
        lightness, a, b = planes
        return lightness * 255.0 / 100.0, a, b
    return planes


def convert_color(rgba: np.ndarray, color_format: str, as_bytes: bool = False) -> np.ndarray:
    """
    Convert an (H, W, 4) RGBA uint8 image into `color_format`.

    Returns (H, W, C) float32 by default. With `as_bytes=True` the result is
    uint8; hue is stored as degrees/2 and Lab lightness as L*255/100 so both
    fit a byte.
    """

    color_format = parse_color_format(color_format)
    src = np.asarray(rgba)
    if src.ndim != 3 or src.shape[2] != 4:
        raise InvalidInput(f"Expected RGBA image of shape (H, W, 4), got {src.shape}")

    planes = src.astype(np.float64)
    r, g, b, a = planes[..., 0], planes[..., 1], planes[..., 2], planes[..., 3]
    out_planes = _CONVERTERS[color_format](r, g, b, a)

    if as_bytes:
        out_planes = _to_byte_range(color_format, out_planes)
        return to_uint8(np.stack(out_planes, axis=-1))
    return np.stack(out_planes, axis=-1).astype(np.float32)


def convert_buffer(buffer: PixelBuffer, color_format: str, as_bytes: bool = False) -> PixelBuffer:
    if buffer.channels != 4 or buffer.color_format != "rgba":
        raise InvalidInput(
            f"convert_buffer expects a 4-channel rgba buffer, got {buffer.channels}-channel {buffer.color_format}"
        )
    out = convert_color(buffer.as_hwc(), color_format, as_bytes=as_bytes)
    return PixelBuffer.from_hwc(out, color_format)
