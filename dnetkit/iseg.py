"""Instance segmentation layer with a per-pixel embedding loss."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

_MAX_INSTANCES = 90


def _regrow(array: np.ndarray, size: int) -> np.ndarray:
    grown = np.zeros(size, dtype=array.dtype)
    keep = min(size, array.size)
    grown[:keep] = array[:keep]
    return grown


@dataclass(eq=False)
class IsegLayer:
    """Predicts class planes plus ``ids`` embedding planes for each pixel.

    ``stats`` holds, for the first item of the last forward batch, one
    ``(pixel_count, mean_squared_spread, mean_embedding)`` tuple per instance.
    """

    batch: int
    w: int
    h: int
    classes: int
    ids: int
    c: int = field(init=False)
    out_w: int = field(init=False)
    out_h: int = field(init=False)
    out_c: int = field(init=False)
    outputs: int = field(init=False)
    inputs: int = field(init=False)
    truths: int = field(init=False)
    cost: float = field(init=False, default=0.0)
    output: np.ndarray = field(init=False, repr=False)
    delta: np.ndarray = field(init=False, repr=False)
    counts: np.ndarray = field(init=False, repr=False)
    sums: np.ndarray = field(init=False, repr=False)
    stats: list = field(init=False, repr=False, default_factory=list)

    def __post_init__(self) -> None:
        self.c = self.classes + self.ids
        self.out_w = self.w
        self.out_h = self.h
        self.out_c = self.c
        self.outputs = self.h * self.w * self.c
        self.inputs = self.outputs
        self.truths = _MAX_INSTANCES * (self.w * self.h + 1)
        self.output = np.zeros(self.batch * self.outputs, dtype=np.float32)
        self.delta = np.zeros(self.batch * self.outputs, dtype=np.float32)
        self.counts = np.zeros(_MAX_INSTANCES, dtype=np.int64)
        self.sums = np.zeros((_MAX_INSTANCES, self.ids), dtype=np.float32)

    def resize(self, w: int, h: int) -> None:
        """Adapt the input size, keeping the leading buffer contents."""
        self.w = w
        self.h = h
        self.outputs = h * w * self.c
        self.inputs = self.outputs
        self.output = _regrow(self.output, self.batch * self.outputs)
        self.delta = _regrow(self.delta, self.batch * self.outputs)

    def forward(self, net_input, truth) -> np.ndarray:
        """Copy the input to ``output`` and compute ``delta`` and ``cost`` against ``truth``.

        Each batch item's truth holds up to 90 rows of ``[class, mask...]``;
        a negative class ends the list.
        """
        n = self.batch * self.outputs
        data = np.asarray(net_input, dtype=np.float32).reshape(-1)
        if data.size < n:
            raise ValueError(f"input holds {data.size} values, layer needs {n}")
        wh = self.w * self.h
        span = _MAX_INSTANCES * (wh + 1)
        truth_arr = np.asarray(truth, dtype=np.float32).reshape(-1)
        needed = (self.batch - 1) * self.truths + span if self.batch else 0
        if truth_arr.size < needed:
            raise ValueError(f"truth holds {truth_arr.size} values, layer needs {needed}")

        self.output[:n] = data[:n]
        self.delta[:n] = 0
        classes = self.classes
        self.stats = []

        for b in range(self.batch):
            out = self.output[b * self.outputs : (b + 1) * self.outputs].reshape(self.c, wh)
            delta = self.delta[b * self.outputs : (b + 1) * self.outputs].reshape(self.c, wh)
            emb = out[classes:]

            delta[:classes] = -out[:classes]
            delta[classes:] = 0.1 * (0 - emb.astype(np.float64))

            start = b * self.truths
            rows = truth_arr[start : start + span].reshape(_MAX_INSTANCES, wh + 1)
            self.counts[:] = 0
            masks: list[np.ndarray] = []
            for i, row in enumerate(rows):
                self.sums[i] = 0
                cls = int(row[0])
                if cls < 0:
                    break
                if cls >= self.c:
                    raise ValueError(f"instance class {cls} outside {self.c} output planes")
                values = row[1:]
                mask = values != 0
                delta[cls, mask] = values[mask] - out[cls, mask]
                self.sums[i] = emb[:, mask].sum(axis=1, dtype=np.float32)
                self.counts[i] = int(np.count_nonzero(mask))
                masks.append(mask)

            spreads: list[float] = []
            for i, mask in enumerate(masks):
                count = int(self.counts[i])
                if count == 0:
                    spreads.append(math.nan)
                    continue
                diff = self.sums[i][:, None].astype(np.float64) / count - emb[:, mask]
                spreads.append(float((diff**2).sum()) / count)

            active = np.flatnonzero(self.counts)
            if active.size:
                scale = np.float32(1) / self.counts[active].astype(np.float32)
                self.sums[active] *= scale[:, None]
            if b == 0:
                self.stats = [
                    (int(self.counts[i]), spreads[i], self.sums[i].copy()) for i in active
                ]

            for i in active:
                mask = masks[i]
                target = emb[:, mask]
                block = delta[classes:, mask]
                for j in active:
                    step = np.where(self.sums[j][:, None] - target < 0, -0.1, 0.1)
                    block = (block + (step if j == i else -step)).astype(np.float32)
                delta[classes:, mask] = block

            delta[classes:] *= np.float32(0.01)

        self.cost = float((self.delta[:n].astype(np.float64) ** 2).sum())
        return self.output

    def backward(self, net_delta: np.ndarray) -> None:
        """Add this layer's ``delta`` into ``net_delta``."""
        n = self.batch * self.inputs
        net_delta[:n] += self.delta[:n]