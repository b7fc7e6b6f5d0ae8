"""Unfolding image patches into columns for convolution as matrix product."""

from __future__ import annotations

import numpy as np


def im2col_get_pixel(im, height: int, width: int, channels: int,
                     row: int, col: int, channel: int, pad: int) -> float:
    """Read one value of a padded image; padding reads as 0."""
    row -= pad
    col -= pad
    if row < 0 or col < 0 or row >= height or col >= width:
        return 0.0
    return float(im[col + width * (row + height * channel)])


def _out_size(length: int, pad: int, ksize: int, stride: int) -> int:
    span = length + 2 * pad - ksize
    steps = span // stride if span >= 0 else -((-span) // stride)
    return steps + 1


def im2col(data_im, channels: int, height: int, width: int,
           ksize: int, stride: int, pad: int) -> np.ndarray:
    """Return the column matrix, flattened, of shape (channels*ksize*ksize, out_h*out_w)."""
    if ksize <= 0 or stride <= 0:
        raise ValueError("ksize and stride must be positive")
    image = np.asarray(data_im, dtype=np.float32).reshape(-1)[: channels * height * width]
    image = image.reshape(channels, height, width)
    height_col = max(0, _out_size(height, pad, ksize, stride))
    width_col = max(0, _out_size(width, pad, ksize, stride))

    rows_needed = ksize + stride * max(0, height_col - 1)
    cols_needed = ksize + stride * max(0, width_col - 1)
    bottom = max(pad, rows_needed - height - pad)
    right = max(pad, cols_needed - width - pad)
    padded = np.pad(image, ((0, 0), (pad, bottom), (pad, right)))

    out = np.zeros((channels, ksize, ksize, height_col, width_col), dtype=np.float32)
    for kh in range(ksize):
        for kw in range(ksize):
            out[:, kh, kw] = padded[
                :,
                kh : kh + stride * height_col : stride,
                kw : kw + stride * width_col : stride,
            ]
    return out.reshape(-1)