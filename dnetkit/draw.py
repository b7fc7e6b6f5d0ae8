"""Drawing boxes, labels and detections onto planar images, plus a few pixel effects."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from dnetkit.image import (
    Image,
    embed_image,
    float_to_image,
    make_empty_image,
    make_image,
    resize_image,
    threshold_image,
    border_image,
    tile_images,
)

_COLORS = (
    (1.0, 0.0, 1.0),
    (0.0, 0.0, 1.0),
    (0.0, 1.0, 1.0),
    (0.0, 1.0, 0.0),
    (1.0, 1.0, 0.0),
    (1.0, 0.0, 0.0),
)
_MASK_SIDE = 14


@dataclass
class Box:
    """A box given by its centre and its size, in relative coordinates."""

    x: float
    y: float
    w: float
    h: float


@dataclass
class Detection:
    """One detected object: its box, class probabilities and optional mask."""

    bbox: Box
    prob: Sequence[float]
    mask: Sequence[float] | None = None
    objectness: float = 0.0


def get_color(c: int, x: int, max_value: int) -> float:
    """Channel ``c`` of a colour taken from a six-step palette at position x/max."""
    ratio = (x / max_value) * 5
    i = math.floor(ratio)
    j = math.ceil(ratio)
    if i < 0 or j >= len(_COLORS):
        raise ValueError(f"position {x} outside palette range 0..{max_value}")
    ratio -= i
    return (1 - ratio) * _COLORS[i][c] + ratio * _COLORS[j][c]


def mask_to_rgb(mask: Image) -> Image:
    """Colour each channel of ``mask`` with its own palette colour and sum them."""
    n = mask.c
    im = make_image(mask.w, mask.h, 3)
    pix = im.pixels
    planes = mask.pixels
    for j in range(n):
        offset = j * 123457 % n
        red = get_color(2, offset, n)
        green = get_color(1, offset, n)
        blue = get_color(0, offset, n)
        plane = planes[j]
        pix[0] += plane * red
        pix[1] += plane * green
        pix[2] += plane * blue
    return im


def _require_rgb(a: Image) -> None:
    if a.c < 3:
        raise ValueError(f"image must have at least 3 channels, got {a.c}")


def draw_box(a: Image, x1: int, y1: int, x2: int, y2: int, r: float, g: float, b: float) -> None:
    """Draw a one pixel wide rectangle outline, clamped to the image."""
    _require_rgb(a)
    if a.w == 0 or a.h == 0:
        return
    x1 = min(max(x1, 0), a.w - 1)
    x2 = min(max(x2, 0), a.w - 1)
    y1 = min(max(y1, 0), a.h - 1)
    y2 = min(max(y2, 0), a.h - 1)
    color = np.array([r, g, b], dtype=np.float32)
    pix = a.pixels
    pix[:3, y1, x1 : x2 + 1] = color[:, None]
    pix[:3, y2, x1 : x2 + 1] = color[:, None]
    pix[:3, y1 : y2 + 1, x1] = color[:, None]
    pix[:3, y1 : y2 + 1, x2] = color[:, None]


def draw_box_width(
    a: Image, x1: int, y1: int, x2: int, y2: int, w: int, r: float, g: float, b: float
) -> None:
    """Draw ``w`` nested outlines, each one pixel inside the last."""
    for i in range(w):
        draw_box(a, x1 + i, y1 + i, x2 - i, y2 - i, r, g, b)


def draw_bbox(a: Image, bbox: Box, w: int, r: float, g: float, b: float) -> None:
    """Draw a relative box as an outline ``w`` pixels wide."""
    left = int((bbox.x - bbox.w / 2) * a.w)
    right = int((bbox.x + bbox.w / 2) * a.w)
    top = int((bbox.y - bbox.h / 2) * a.h)
    bot = int((bbox.y + bbox.h / 2) * a.h)
    draw_box_width(a, left, top, right, bot, w, r, g, b)


def draw_label(a: Image, r: int, c: int, label: Image, rgb: Sequence[float]) -> None:
    """Paint ``label`` tinted by ``rgb`` above row ``r`` (or below it near the top)."""
    w, h = label.w, label.h
    if r - h >= 0:
        r -= h
    rows = max(0, min(h, a.h - r))
    cols = max(0, min(w, a.w - c))
    if rows == 0 or cols == 0 or label.c == 0:
        return
    tint = np.asarray(rgb, dtype=np.float32)[: label.c]
    if tint.size < label.c:
        raise ValueError("one colour value is needed for every label channel")
    part = label.pixels[:, :rows, :cols] * tint[:, None, None]
    embed_image(Image(cols, rows, label.c, part.astype(np.float32).reshape(-1)), a, c, r)


def get_label(characters, string: str, size: int) -> Image:
    """Build a bordered text image from glyphs indexed by size and character code."""
    size = int(size) // 10
    if size > 7:
        size = 7
    label = make_empty_image(0, 0, 0)
    spacing = -size - 1 + (size + 1) // 2
    for ch in string:
        glyph = characters[size][ord(ch)]
        label = tile_images(label, glyph, spacing)
    return border_image(label, int(label.h * 0.25))


def draw_detections(
    im: Image,
    dets: Sequence[Detection],
    thresh: float,
    names: Sequence[str],
    alphabet,
    classes: int,
) -> list[str]:
    """Draw every detection that has a class above ``thresh``.

    Returns one ``"name: NN%"`` line for every class that passed the threshold.
    """
    report: list[str] = []
    for det in dets:
        found: list[int] = []
        for j in range(classes):
            prob = float(det.prob[j])
            if prob > thresh:
                found.append(j)
                report.append(f"{names[j]}: {prob * 100:.0f}%")
        if not found:
            continue
        cls = found[0]
        labelstr = ", ".join(names[j] for j in found)
        width = int(im.h * 0.006)
        offset = cls * 123457 % classes
        red = get_color(2, offset, classes)
        green = get_color(1, offset, classes)
        blue = get_color(0, offset, classes)
        rgb = (red, green, blue)
        b = det.bbox

        left = int((b.x - b.w / 2.0) * im.w)
        right = int((b.x + b.w / 2.0) * im.w)
        top = int((b.y - b.h / 2.0) * im.h)
        bot = int((b.y + b.h / 2.0) * im.h)
        left = max(left, 0)
        right = min(right, im.w - 1)
        top = max(top, 0)
        bot = min(bot, im.h - 1)

        draw_box_width(im, left, top, right, bot, width, red, green, blue)
        if alphabet:
            label = get_label(alphabet, labelstr, int(im.h * 0.03))
            draw_label(im, top + width, left, label, rgb)
        if det.mask is not None:
            mask = float_to_image(_MASK_SIDE, _MASK_SIDE, 1, det.mask)
            mask_w = int(b.w * im.w)
            mask_h = int(b.h * im.h)
            if mask_w > 0 and mask_h > 0:
                resized = resize_image(mask, mask_w, mask_h)
                embed_image(threshold_image(resized, 0.5), im, left, top)
    return report


def ghost_image(source: Image, dest: Image, dx: int, dy: int) -> None:
    """Blend ``source`` into ``dest`` with a weight that fades from the centre outward."""
    if (
        dx < 0
        or dy < 0
        or dx + source.w > dest.w
        or dy + source.h > dest.h
        or source.c > dest.c
    ):
        raise IndexError("source does not fit inside destination at the given offset")
    if source.size == 0:
        return
    half_w = source.w / 2.0
    half_h = source.h / 2.0
    max_dist = math.sqrt((-half_w + 0.5) * (-half_w + 0.5))
    xs, ys = np.meshgrid(
        np.arange(source.w, dtype=np.float64), np.arange(source.h, dtype=np.float64)
    )
    dist = np.sqrt((xs - half_w + 0.5) ** 2 + (ys - half_h + 0.5) ** 2)
    with np.errstate(divide="ignore", invalid="ignore"):
        alpha = 1 - dist / max_dist
    alpha = np.where(alpha < 0, 0.0, alpha)
    region = dest.pixels[: source.c, dy : dy + source.h, dx : dx + source.w]
    region[:] = alpha * source.pixels + (1 - alpha) * region


def blocky_image(im: Image, s: int) -> None:
    """Pixelate in place: every ``s`` x ``s`` block takes its top-left value."""
    if s <= 0:
        raise ValueError("block size must be positive")
    pix = im.pixels
    rows = np.arange(im.h) // s * s
    cols = np.arange(im.w) // s * s
    pix[:] = pix[:, rows][:, :, cols]


def censor_image(im: Image, dx: int, dy: int, w: int, h: int) -> None:
    """Pixelate a rectangle in 32 pixel blocks, in place."""
    s = 32
    dx = max(dx, 0)
    dy = max(dy, 0)
    x1 = min(dx + w, im.w)
    y1 = min(dy + h, im.h)
    if x1 <= dx or y1 <= dy:
        return
    pix = im.pixels
    rows = np.arange(dy, y1) // s * s
    cols = np.arange(dx, x1) // s * s
    pix[:, dy:y1, dx:x1] = pix[:, rows][:, :, cols]