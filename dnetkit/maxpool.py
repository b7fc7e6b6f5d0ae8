"""Max pooling layer with arg-max routing of gradients."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from dnetkit.image import Image, float_to_image

_LOWEST = np.finfo(np.float32).min


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _regrow(array: np.ndarray, size: int) -> np.ndarray:
    grown = np.zeros(size, dtype=array.dtype)
    keep = min(size, array.size)
    grown[:keep] = array[:keep]
    return grown


@dataclass(eq=False)
class MaxpoolLayer:
    """Takes the maximum over ``size`` x ``size`` windows moved by ``stride``."""

    batch: int
    h: int
    w: int
    c: int
    size: int
    stride: int
    pad: int
    out_w: int = field(init=False)
    out_h: int = field(init=False)
    out_c: int = field(init=False)
    inputs: int = field(init=False)
    outputs: int = field(init=False)
    output: np.ndarray = field(init=False, repr=False)
    delta: np.ndarray = field(init=False, repr=False)
    indexes: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.size <= 0 or self.stride <= 0:
            raise ValueError("size and stride must be positive")
        self._set_shape(self.w, self.h)
        count = self.outputs * self.batch
        self.indexes = np.zeros(count, dtype=np.int64)
        self.output = np.zeros(count, dtype=np.float32)
        self.delta = np.zeros(count, dtype=np.float32)

    def _set_shape(self, w: int, h: int) -> None:
        self.w = w
        self.h = h
        self.inputs = h * w * self.c
        self.out_w = _cdiv(w + self.pad - self.size, self.stride) + 1
        self.out_h = _cdiv(h + self.pad - self.size, self.stride) + 1
        self.out_c = self.c
        self.outputs = self.out_w * self.out_h * self.out_c

    def resize(self, w: int, h: int) -> None:
        """Adapt to a new input size, keeping the leading buffer contents."""
        self._set_shape(w, h)
        count = self.outputs * self.batch
        self.indexes = _regrow(self.indexes, count)
        self.output = _regrow(self.output, count)
        self.delta = _regrow(self.delta, count)

    def forward(self, net_input) -> np.ndarray:
        """Pool ``net_input`` into ``output`` and record the winning indexes."""
        data = np.asarray(net_input, dtype=np.float32).reshape(-1)
        needed = self.batch * self.inputs
        if data.size < needed:
            raise ValueError(f"input holds {data.size} values, layer needs {needed}")
        inp = data[:needed].reshape(self.batch, self.c, self.h, self.w)
        offset = -(self.pad // 2)
        rows = np.arange(self.out_h) * self.stride + offset
        cols = np.arange(self.out_w) * self.stride + offset
        base = (np.arange(self.batch)[:, None] * self.c + np.arange(self.c)[None, :]) * self.h
        base = base[:, :, None, None]

        best = np.full((self.batch, self.c, self.out_h, self.out_w), _LOWEST, dtype=np.float32)
        best_i = np.full(best.shape, -1, dtype=np.int64)
        for n in range(self.size):
            cur_h = rows + n
            valid_h = (cur_h >= 0) & (cur_h < self.h)
            ch = np.clip(cur_h, 0, max(self.h - 1, 0))
            for m in range(self.size):
                cur_w = cols + m
                valid_w = (cur_w >= 0) & (cur_w < self.w)
                cw = np.clip(cur_w, 0, max(self.w - 1, 0))
                valid = valid_h[:, None] & valid_w[None, :]
                if self.h and self.w:
                    vals = inp[:, :, ch][:, :, :, cw]
                else:
                    vals = np.full(best.shape, _LOWEST, dtype=np.float32)
                vals = np.where(valid, vals, _LOWEST)
                index = cur_w[None, None, None, :] + self.w * (cur_h[None, None, :, None] + base)
                better = vals > best
                best_i = np.where(better, index, best_i)
                best = np.where(better, vals, best)
        self.output[: best.size] = best.reshape(-1)
        self.indexes[: best_i.size] = best_i.reshape(-1)
        return self.output

    def backward(self, net_delta: np.ndarray) -> None:
        """Add ``delta`` into ``net_delta`` at the positions that won the forward pass."""
        count = self.out_h * self.out_w * self.c * self.batch
        indexes = self.indexes[:count]
        picked = indexes >= 0
        np.add.at(net_delta, indexes[picked], self.delta[:count][picked])

    def output_image(self) -> Image:
        return float_to_image(self.out_w, self.out_h, self.c, self.output)

    def delta_image(self) -> Image:
        return float_to_image(self.out_w, self.out_h, self.c, self.delta)