"""Colour-space conversions and colour adjustments on three-channel images."""

from __future__ import annotations

import numpy as np

from dnetkit.image import Image, constrain_image, make_image

_GRAY_WEIGHTS = (0.299, 0.587, 0.114)


def three_way_max(a: float, b: float, c: float) -> float:
    """The largest of three values."""
    return (a if a > c else c) if a > b else (b if b > c else c)


def three_way_min(a: float, b: float, c: float) -> float:
    """The smallest of three values."""
    return (a if a < c else c) if a < b else (b if b < c else c)


def _rgb_planes(im: Image) -> np.ndarray:
    if im.c != 3:
        raise ValueError(f"image must have 3 channels, got {im.c}")
    return im.pixels


def rgb_to_hsv(im: Image) -> None:
    """Convert an RGB image to HSV in place, with hue scaled to [0, 1).

    Pixels with no colour (all channels equal) get hue 0.
    """
    pix = _rgb_planes(im)
    r, g, b = (pix[i].astype(np.float32) for i in range(3))
    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)
    delta = mx - mn
    with np.errstate(divide="ignore", invalid="ignore"):
        h = np.where(
            r == mx,
            (g - b) / delta,
            np.where(g == mx, 2 + (b - r) / delta, 4 + (r - g) / delta),
        )
        s = delta / mx
    h = np.where(delta == 0, 0.0, h)
    h = np.where(h < 0, h + 6, h) / 6.0
    black = mx == 0
    pix[0] = np.where(black, 0.0, h)
    pix[1] = np.where(black, 0.0, s)
    pix[2] = mx


def hsv_to_rgb(im: Image) -> None:
    """Convert an HSV image (hue in [0, 1)) back to RGB in place."""
    pix = _rgb_planes(im)
    h = 6 * pix[0].astype(np.float32)
    s = pix[1].astype(np.float32)
    v = pix[2].astype(np.float32)
    index = np.floor(h)
    f = h - index
    p = v * (1 - s)
    q = v * (1 - s * f)
    t = v * (1 - s * (1 - f))
    cases = [index == i for i in range(5)]
    r = np.select(cases, [v, q, p, p, t], default=v)
    g = np.select(cases, [t, v, v, q, p], default=p)
    b = np.select(cases, [p, p, t, v, v], default=q)
    grey = s == 0
    pix[0] = np.where(grey, v, r)
    pix[1] = np.where(grey, v, g)
    pix[2] = np.where(grey, v, b)


def rgb_to_yuv(im: Image) -> None:
    """Convert an RGB image to YUV in place."""
    pix = _rgb_planes(im)
    r, g, b = (pix[i].copy() for i in range(3))
    pix[0] = 0.299 * r + 0.587 * g + 0.114 * b
    pix[1] = -0.14713 * r + -0.28886 * g + 0.436 * b
    pix[2] = 0.615 * r + -0.51499 * g + -0.10001 * b


def yuv_to_rgb(im: Image) -> None:
    """Convert a YUV image to RGB in place."""
    pix = _rgb_planes(im)
    y, u, v = (pix[i].copy() for i in range(3))
    pix[0] = y + 1.13983 * v
    pix[1] = y + -0.39465 * u + -0.58060 * v
    pix[2] = y + 2.03211 * u


def _luma(pix: np.ndarray) -> np.ndarray:
    gray = np.zeros(pix.shape[1:], dtype=np.float32)
    for weight, plane in zip(_GRAY_WEIGHTS, pix):
        gray += np.float32(weight) * plane
    return gray


def grayscale_image(im: Image) -> Image:
    """Return a single-channel luma image of an RGB image."""
    pix = _rgb_planes(im)
    gray = make_image(im.w, im.h, 1)
    gray.pixels[0] = _luma(pix)
    return gray


def grayscale_image_3c(im: Image) -> None:
    """Replace every channel of an RGB image with its luma, in place."""
    pix = _rgb_planes(im)
    pix[:] = _luma(pix)


def rgbgr_image(im: Image) -> None:
    """Swap the first and third channels in place."""
    if im.c < 3:
        raise ValueError(f"image must have at least 3 channels, got {im.c}")
    pix = im.pixels
    pix[[0, 2]] = pix[[2, 0]]


def _channel(im: Image, c: int) -> np.ndarray:
    if not 0 <= c < im.c:
        raise IndexError(f"channel {c} outside image with {im.c} channels")
    return im.pixels[c]


def scale_image_channel(im: Image, c: int, v: float) -> None:
    """Multiply channel ``c`` by ``v``."""
    _channel(im, c)[:] *= v


def translate_image_channel(im: Image, c: int, v: float) -> None:
    """Add ``v`` to channel ``c``."""
    _channel(im, c)[:] += v


def _shift_hue(im: Image, hue: float) -> None:
    plane = im.pixels[0]
    shifted = plane + hue
    shifted = np.where(shifted > 1, shifted - 1, shifted)
    shifted = np.where(shifted < 0, shifted + 1, shifted)
    plane[:] = shifted


def saturate_image(im: Image, sat: float) -> None:
    """Scale the saturation of an RGB image and clamp to [0, 1]."""
    rgb_to_hsv(im)
    scale_image_channel(im, 1, sat)
    hsv_to_rgb(im)
    constrain_image(im)


def hue_image(im: Image, hue: float) -> None:
    """Rotate the hue of an RGB image by ``hue`` (a fraction of a turn)."""
    rgb_to_hsv(im)
    _shift_hue(im, hue)
    hsv_to_rgb(im)
    constrain_image(im)


def exposure_image(im: Image, sat: float) -> None:
    """Scale the value (brightness) of an RGB image and clamp to [0, 1]."""
    rgb_to_hsv(im)
    scale_image_channel(im, 2, sat)
    hsv_to_rgb(im)
    constrain_image(im)


def distort_image(im: Image, hue: float, sat: float, val: float) -> None:
    """Shift hue and scale saturation and value of an RGB image."""
    rgb_to_hsv(im)
    scale_image_channel(im, 1, sat)
    scale_image_channel(im, 2, val)
    _shift_hue(im, hue)
    hsv_to_rgb(im)
    constrain_image(im)


def saturate_exposure_image(im: Image, sat: float, exposure: float) -> None:
    """Scale saturation and value of an RGB image."""
    rgb_to_hsv(im)
    scale_image_channel(im, 1, sat)
    scale_image_channel(im, 2, exposure)
    hsv_to_rgb(im)
    constrain_image(im)