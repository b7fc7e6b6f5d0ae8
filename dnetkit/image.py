"""Planar float images and the geometric operations defined on them.

Pixel data is stored channel-major: the value at column ``x``, row ``y`` and
channel ``c`` lives at ``data[c*h*w + y*w + x]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

_DTYPE = np.float32


@dataclass(eq=False)
class Image:
    """An image of ``w`` x ``h`` pixels with ``c`` channels."""

    w: int
    h: int
    c: int
    data: np.ndarray | None = None

    @property
    def size(self) -> int:
        return self.w * self.h * self.c

    @property
    def pixels(self) -> np.ndarray:
        """A writable view of the data shaped ``(c, h, w)``."""
        if self.data is None:
            raise ValueError("image has no data")
        return self.data[: self.size].reshape(self.c, self.h, self.w)

    def _offset(self, x: int, y: int, c: int) -> int:
        if not (0 <= x < self.w and 0 <= y < self.h and 0 <= c < self.c):
            raise IndexError(f"pixel ({x}, {y}, {c}) outside {self.w}x{self.h}x{self.c} image")
        return c * self.h * self.w + y * self.w + x

    def get_pixel(self, x: int, y: int, c: int) -> float:
        """Return one pixel; raise IndexError when it lies outside the image."""
        return float(self.data[self._offset(x, y, c)])

    def get_pixel_extend(self, x: int, y: int, c: int) -> float:
        """Return one pixel, or 0 for coordinates outside the image."""
        if x < 0 or x >= self.w or y < 0 or y >= self.h or c < 0 or c >= self.c:
            return 0.0
        return self.get_pixel(x, y, c)

    def set_pixel(self, x: int, y: int, c: int, val: float) -> None:
        """Store one pixel; coordinates outside the image are ignored."""
        if x < 0 or y < 0 or c < 0 or x >= self.w or y >= self.h or c >= self.c:
            return
        self.data[self._offset(x, y, c)] = val

    def add_pixel(self, x: int, y: int, c: int, val: float) -> None:
        """Add to one pixel; raise IndexError when it lies outside the image."""
        self.data[self._offset(x, y, c)] += val

    def copy(self) -> Image:
        """Return a deep copy."""
        data = None if self.data is None else self.data.copy()
        return Image(self.w, self.h, self.c, data)


def make_empty_image(w: int, h: int, c: int) -> Image:
    """An image header without pixel storage."""
    return Image(w, h, c, None)


def make_image(w: int, h: int, c: int) -> Image:
    """A zero-filled image."""
    return Image(w, h, c, np.zeros(w * h * c, dtype=_DTYPE))


def make_random_image(w: int, h: int, c: int, rng: np.random.Generator | None = None) -> Image:
    """An image of normally distributed values centred on 0.5 with deviation 0.25."""
    rng = rng if rng is not None else np.random.default_rng()
    values = rng.standard_normal(w * h * c) * 0.25 + 0.5
    return Image(w, h, c, values.astype(_DTYPE))


def float_to_image(w: int, h: int, c: int, data) -> Image:
    """Wrap existing float data as an image without copying numpy float32 arrays."""
    array = np.asarray(data, dtype=_DTYPE)
    if array.ndim != 1:
        array = array.reshape(-1)
    if array.size < w * h * c:
        raise ValueError(f"{array.size} values cannot hold a {w}x{h}x{c} image")
    return Image(w, h, c, array)


def copy_image_into(src: Image, dest: Image) -> None:
    """Copy the pixel values of ``src`` into the storage of ``dest``."""
    n = src.size
    if dest.data is None or dest.data.size < n:
        raise ValueError("destination image is too small")
    dest.data[:n] = src.data[:n]


def bilinear_interpolate(im: Image, x: float, y: float, c: int) -> float:
    """Sample channel ``c`` at a fractional position, treating outside as 0."""
    ix = math.floor(x)
    iy = math.floor(y)
    dx = x - ix
    dy = y - iy
    return (
        (1 - dy) * (1 - dx) * im.get_pixel_extend(ix, iy, c)
        + dy * (1 - dx) * im.get_pixel_extend(ix, iy + 1, c)
        + (1 - dy) * dx * im.get_pixel_extend(ix + 1, iy, c)
        + dy * dx * im.get_pixel_extend(ix + 1, iy + 1, c)
    )


def _sample(im: Image, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Bilinear samples of every channel at the given grids, shaped (c, *xs.shape)."""
    ix = np.floor(xs).astype(np.int64)
    iy = np.floor(ys).astype(np.int64)
    dx = xs - ix
    dy = ys - iy
    src = im.pixels

    def at(px: np.ndarray, py: np.ndarray) -> np.ndarray:
        valid = (px >= 0) & (px < im.w) & (py >= 0) & (py < im.h)
        values = src[:, np.clip(py, 0, im.h - 1), np.clip(px, 0, im.w - 1)]
        return np.where(valid, values, 0.0)

    return (
        (1 - dy) * (1 - dx) * at(ix, iy)
        + dy * (1 - dx) * at(ix, iy + 1)
        + (1 - dy) * dx * at(ix + 1, iy)
        + dy * dx * at(ix + 1, iy + 1)
    )


def _from_planes(planes: np.ndarray) -> Image:
    c, h, w = planes.shape
    return Image(w, h, c, np.ascontiguousarray(planes, dtype=_DTYPE).reshape(-1))


def _overlap(length: int, offset: int, dest_length: int) -> tuple[int, int]:
    return max(0, -offset), min(length, dest_length - offset)


def _region(source: Image, dest: Image, dx: int, dy: int):
    x0, x1 = _overlap(source.w, dx, dest.w)
    y0, y1 = _overlap(source.h, dy, dest.h)
    channels = min(source.c, dest.c)
    if x0 >= x1 or y0 >= y1 or channels <= 0:
        return None
    src = (slice(0, channels), slice(y0, y1), slice(x0, x1))
    dst = (slice(0, channels), slice(y0 + dy, y1 + dy), slice(x0 + dx, x1 + dx))
    return src, dst


def embed_image(source: Image, dest: Image, dx: int, dy: int) -> None:
    """Copy ``source`` into ``dest`` at offset (dx, dy), clipping at the edges."""
    region = _region(source, dest, dx, dy)
    if region is None:
        return
    src, dst = region
    dest.pixels[dst] = source.pixels[src]


def composite_image(source: Image, dest: Image, dx: int, dy: int) -> None:
    """Multiply the overlapping part of ``dest`` by ``source``."""
    region = _region(source, dest, dx, dy)
    if region is None:
        return
    src, dst = region
    dest.pixels[dst] *= source.pixels[src]


def border_image(a: Image, border: int) -> Image:
    """Surround ``a`` with a border of ones."""
    border = int(border)
    b = make_image(a.w + 2 * border, a.h + 2 * border, a.c)
    b.data.fill(1)
    embed_image(a, b, border, border)
    return b


def tile_images(a: Image, b: Image, dx: int) -> Image:
    """Place ``b`` to the right of ``a`` with ``dx`` pixels between them."""
    if a.w == 0:
        return b.copy()
    c = make_image(a.w + b.w + dx, max(a.h, b.h), max(a.c, b.c))
    c.data.fill(1)
    embed_image(a, c, 0, 0)
    composite_image(b, c, a.w + dx, 0)
    return c


def crop_image(im: Image, dx: int, dy: int, w: int, h: int) -> Image:
    """Cut a ``w`` x ``h`` window at (dx, dy), repeating edge pixels outside."""
    cropped = make_image(w, h, im.c)
    if cropped.size == 0:
        return cropped
    rows = np.clip(np.arange(h) + dy, 0, im.h - 1)
    cols = np.clip(np.arange(w) + dx, 0, im.w - 1)
    cropped.pixels[:] = im.pixels[:, rows][:, :, cols]
    return cropped


def _rand_int(rng: np.random.Generator, low: int, high: int) -> int:
    if high < low:
        low, high = high, low
    return int(rng.integers(low, high + 1))


def random_crop_image(im: Image, w: int, h: int, rng: np.random.Generator | None = None) -> Image:
    """Crop a ``w`` x ``h`` window at a random position."""
    rng = rng if rng is not None else np.random.default_rng()
    dx = _rand_int(rng, 0, im.w - w)
    dy = _rand_int(rng, 0, im.h - h)
    return crop_image(im, dx, dy, w, h)


def resize_image(im: Image, w: int, h: int) -> Image:
    """Bilinear resize, first along rows and then along columns."""
    f32 = np.float32
    src = im.pixels
    w_scale = f32(im.w - 1) / f32(w - 1) if w > 1 else f32(0)
    h_scale = f32(im.h - 1) / f32(h - 1) if h > 1 else f32(0)

    cols = np.arange(w)
    sx = cols.astype(f32) * w_scale
    ix = sx.astype(np.int64)
    dx = sx - ix.astype(f32)
    edge = (cols == w - 1) | (im.w == 1)
    ix = np.minimum(np.where(edge, im.w - 1, ix), im.w - 1)
    dx = np.where(edge, f32(0), dx).astype(f32)
    ix1 = np.minimum(ix + 1, im.w - 1)
    part = (1 - dx) * src[:, :, ix] + dx * src[:, :, ix1]

    rows = np.arange(h)
    sy = rows.astype(f32) * h_scale
    raw_iy = sy.astype(np.int64)
    dy = (sy - raw_iy.astype(f32))[None, :, None]
    iy = np.minimum(raw_iy, im.h - 1)
    iy1 = np.minimum(iy + 1, im.h - 1)
    resized = (1 - dy) * part[:, iy, :]
    add = ~((rows == h - 1) | (im.h == 1))
    resized = resized + np.where(add[None, :, None], dy * part[:, iy1, :], 0)
    return _from_planes(resized.reshape(im.c, h, w))


def resize_max(im: Image, max_size: int) -> Image:
    """Scale so the longer side equals ``max_size``; return ``im`` if unchanged."""
    w, h = im.w, im.h
    if w > h:
        h = (h * max_size) // w
        w = max_size
    else:
        w = (w * max_size) // h
        h = max_size
    if w == im.w and h == im.h:
        return im
    return resize_image(im, w, h)


def resize_min(im: Image, min_size: int) -> Image:
    """Scale so the shorter side equals ``min_size``; return ``im`` if unchanged."""
    w, h = im.w, im.h
    if w < h:
        h = (h * min_size) // w
        w = min_size
    else:
        w = (w * min_size) // h
        h = min_size
    if w == im.w and h == im.h:
        return im
    return resize_image(im, w, h)


def center_crop_image(im: Image, w: int, h: int) -> Image:
    """Crop the central square and resize it to ``w`` x ``h``."""
    m = min(im.w, im.h)
    square = crop_image(im, (im.w - m) // 2, (im.h - m) // 2, m, m)
    return resize_image(square, w, h)


def _letterbox_size(im: Image, w: int, h: int) -> tuple[int, int]:
    if w / im.w < h / im.h:
        return w, (im.h * w) // im.w
    return (im.w * h) // im.h, h


def letterbox_image_into(im: Image, w: int, h: int, boxed: Image) -> None:
    """Resize keeping the aspect ratio and centre the result inside ``boxed``."""
    new_w, new_h = _letterbox_size(im, w, h)
    resized = resize_image(im, new_w, new_h)
    embed_image(resized, boxed, (w - new_w) // 2, (h - new_h) // 2)


def letterbox_image(im: Image, w: int, h: int) -> Image:
    """Resize keeping the aspect ratio onto a ``w`` x ``h`` canvas filled with 0.5."""
    boxed = make_image(w, h, im.c)
    fill_image(boxed, 0.5)
    letterbox_image_into(im, w, h, boxed)
    return boxed


def place_image(im: Image, w: int, h: int, dx: int, dy: int, canvas: Image) -> None:
    """Draw ``im`` scaled to ``w`` x ``h`` onto ``canvas`` at (dx, dy)."""
    xs, ys = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
    rx = (xs / w) * im.w
    ry = (ys / h) * im.h
    embed_image(_from_planes(_sample(im, rx, ry)), canvas, dx, dy)


def rotate_image(im: Image, rad: float) -> Image:
    """Rotate about the centre by ``rad`` radians, filling outside with 0."""
    cx = im.w / 2.0
    cy = im.h / 2.0
    xs, ys = np.meshgrid(np.arange(im.w, dtype=np.float64), np.arange(im.h, dtype=np.float64))
    rx = math.cos(rad) * (xs - cx) - math.sin(rad) * (ys - cy) + cx
    ry = math.sin(rad) * (xs - cx) + math.cos(rad) * (ys - cy) + cy
    return _from_planes(_sample(im, rx, ry))


def rotate_crop_image(
    im: Image, rad: float, s: float, w: int, h: int, dx: float, dy: float, aspect: float
) -> Image:
    """Rotate, scale by ``s``, shift and stretch, sampling a ``w`` x ``h`` window."""
    cx = im.w / 2.0
    cy = im.h / 2.0
    xs, ys = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
    u = (xs - w / 2.0) / s * aspect + dx / s * aspect
    v = (ys - h / 2.0) / s + dy / s
    rx = math.cos(rad) * u - math.sin(rad) * v + cx
    ry = math.sin(rad) * u + math.cos(rad) * v + cy
    return _from_planes(_sample(im, rx, ry))


def _require_square(im: Image) -> None:
    if im.w != im.h:
        raise ValueError(f"image must be square, got {im.w}x{im.h}")


def rotate_image_cw(im: Image, times: int) -> None:
    """Rotate a square image in place by quarter turns."""
    _require_square(im)
    pix = im.pixels
    pix[:] = np.rot90(pix, k=times % 4, axes=(1, 2)).copy()


def transpose_image(im: Image) -> None:
    """Swap rows and columns of a square image in place."""
    _require_square(im)
    pix = im.pixels
    pix[:] = pix.transpose(0, 2, 1).copy()


def flip_image(a: Image) -> None:
    """Mirror the image left to right in place."""
    pix = a.pixels
    pix[:] = pix[:, :, ::-1].copy()


def fill_image(m: Image, s: float) -> None:
    m.data[: m.size] = s


def translate_image(m: Image, s: float) -> None:
    m.data[: m.size] += s


def scale_image(m: Image, s: float) -> None:
    m.data[: m.size] *= s


def constrain_image(im: Image) -> None:
    """Clamp every value into [0, 1]."""
    np.clip(im.data[: im.size], 0, 1, out=im.data[: im.size])


def _stretch(values: np.ndarray, lo: float, hi: float) -> np.ndarray:
    if hi - lo < 1e-9:
        lo, hi = 0.0, 1.0
    return (values - lo) / (hi - lo)


def normalize_image(p: Image) -> None:
    """Stretch all values linearly onto [0, 1]."""
    values = p.data[: p.size]
    lo, hi = 9999999.0, -999999.0
    if values.size:
        lo = min(lo, float(values.min()))
        hi = max(hi, float(values.max()))
    values[:] = _stretch(values, lo, hi)


def normalize_image2(p: Image) -> None:
    """Stretch each channel independently onto [0, 1]."""
    for plane in p.pixels:
        plane[:] = _stretch(plane, float(plane.min()), float(plane.max()))


def get_image_layer(m: Image, l: int) -> Image:
    """Return channel ``l`` as a single-channel image."""
    if not 0 <= l < m.c:
        raise IndexError(f"channel {l} outside image with {m.c} channels")
    return Image(m.w, m.h, 1, m.pixels[l].reshape(-1).copy())


def collapse_image_layers(source: Image, border: int) -> Image:
    """Stack the channels vertically into one single-channel image."""
    h = (source.h + border) * source.c - border
    dest = make_image(source.w, h, 1)
    for i in range(source.c):
        embed_image(get_image_layer(source, i), dest, 0, i * (source.h + border))
    return dest


def collapse_images_vert(ims: list[Image]) -> Image:
    """Stack images vertically; non-RGB images have their channels laid side by side."""
    if not ims:
        raise ValueError("no images to collapse")
    border = 1
    first = ims[0]
    w = first.w
    h = (first.h + border) * len(ims) - border
    c = first.c
    if c != 3:
        w = (w + border) * c - border
        c = 1
    filters = make_image(w, h, c)
    for i, im in enumerate(ims):
        h_offset = i * (first.h + border)
        if c == 3:
            embed_image(im, filters, 0, h_offset)
        else:
            for j in range(im.c):
                embed_image(get_image_layer(im, j), filters, j * (first.w + border), h_offset)
    return filters


def collapse_images_horz(ims: list[Image]) -> Image:
    """Place images side by side; non-RGB images have their channels stacked."""
    if not ims:
        raise ValueError("no images to collapse")
    border = 1
    first = ims[0]
    size = first.h
    h = size
    w = (first.w + border) * len(ims) - border
    c = first.c
    if c != 3:
        h = (h + border) * c - border
        c = 1
    filters = make_image(w, h, c)
    for i, im in enumerate(ims):
        w_offset = i * (size + border)
        if c == 3:
            embed_image(im, filters, w_offset, 0)
        else:
            for j in range(im.c):
                embed_image(get_image_layer(im, j), filters, w_offset, j * (size + border))
    return filters


def threshold_image(im: Image, thresh: float) -> Image:
    """Return a copy holding 1 where a value exceeds ``thresh`` and 0 elsewhere."""
    values = (im.data[: im.size] > thresh).astype(_DTYPE)
    return Image(im.w, im.h, im.c, values)


def binarize_image(im: Image) -> Image:
    """Threshold a copy of the image at 0.5."""
    return threshold_image(im, 0.5)


def blend_image(fore: Image, back: Image, alpha: float) -> Image:
    """Mix two equally sized images: alpha * fore + (1 - alpha) * back."""
    if (fore.w, fore.h, fore.c) != (back.w, back.h, back.c):
        raise ValueError("images to blend must have the same shape")
    values = alpha * fore.data[: fore.size] + (1 - alpha) * back.data[: back.size]
    return Image(fore.w, fore.h, fore.c, values.astype(_DTYPE))


def image_distance(a: Image, b: Image) -> Image:
    """Per-pixel Euclidean distance across the channels of ``a``."""
    n = a.size
    if b.data is None or b.data.size < n:
        raise ValueError("second image is too small")
    diff = a.data[:n].astype(np.float64) - b.data[:n]
    dist = np.sqrt((diff.reshape(a.c, a.h * a.w) ** 2).sum(axis=0))
    return Image(a.w, a.h, 1, dist.astype(_DTYPE))


def format_image(m: Image) -> str:
    """Render at most 32x32 values of every channel as text."""
    out = []
    for plane in m.pixels:
        for row in plane[:32]:
            out.append("".join(f"{float(v):.2f}, " for v in row[:32]) + "\n")
        out.append("\n")
    out.append("\n")
    return "".join(out)