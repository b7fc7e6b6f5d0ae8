"""Network-level bookkeeping: layer kinds, learning-rate schedules and prediction summaries."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, auto

import numpy as np


class LayerType(Enum):
    """Every kind of layer a network description can name."""

    CONVOLUTIONAL = auto()
    DECONVOLUTIONAL = auto()
    CONNECTED = auto()
    MAXPOOL = auto()
    SOFTMAX = auto()
    DETECTION = auto()
    DROPOUT = auto()
    CROP = auto()
    ROUTE = auto()
    COST = auto()
    NORMALIZATION = auto()
    AVGPOOL = auto()
    LOCAL = auto()
    SHORTCUT = auto()
    ACTIVE = auto()
    RNN = auto()
    GRU = auto()
    LSTM = auto()
    CRNN = auto()
    BATCHNORM = auto()
    NETWORK = auto()
    XNOR = auto()
    REGION = auto()
    YOLO = auto()
    ISEG = auto()
    REORG = auto()
    UPSAMPLE = auto()
    LOGXENT = auto()
    L2NORM = auto()
    BLANK = auto()


class LearningRatePolicy(Enum):
    """How the learning rate changes as training proceeds."""

    CONSTANT = auto()
    STEP = auto()
    EXP = auto()
    POLY = auto()
    STEPS = auto()
    SIG = auto()
    RANDOM = auto()


_LAYER_NAMES = {
    LayerType.CONVOLUTIONAL: "convolutional",
    LayerType.ACTIVE: "activation",
    LayerType.LOCAL: "local",
    LayerType.DECONVOLUTIONAL: "deconvolutional",
    LayerType.CONNECTED: "connected",
    LayerType.RNN: "rnn",
    LayerType.GRU: "gru",
    LayerType.LSTM: "lstm",
    LayerType.CRNN: "crnn",
    LayerType.MAXPOOL: "maxpool",
    LayerType.REORG: "reorg",
    LayerType.AVGPOOL: "avgpool",
    LayerType.SOFTMAX: "softmax",
    LayerType.DETECTION: "detection",
    LayerType.REGION: "region",
    LayerType.YOLO: "yolo",
    LayerType.DROPOUT: "dropout",
    LayerType.CROP: "crop",
    LayerType.COST: "cost",
    LayerType.ROUTE: "route",
    LayerType.SHORTCUT: "shortcut",
    LayerType.NORMALIZATION: "normalization",
    LayerType.BATCHNORM: "batchnorm",
}


def layer_type_name(layer_type: LayerType) -> str:
    """The display name of a layer kind, or ``"none"`` for kinds without one."""
    return _LAYER_NAMES.get(layer_type, "none")


@dataclass
class Schedule:
    """Training parameters that decide the learning rate at each batch."""

    learning_rate: float = 0.001
    policy: LearningRatePolicy = LearningRatePolicy.CONSTANT
    batch: int = 1
    subdivisions: int = 1
    burn_in: int = 0
    power: float = 4.0
    step: int = 1
    scale: float = 1.0
    steps: Sequence[int] = ()
    scales: Sequence[float] = ()
    gamma: float = 1.0
    max_batches: int = 0

    def current_batch(self, seen: int) -> int:
        """Number of whole batches contained in ``seen`` images."""
        per_batch = self.batch * self.subdivisions
        if per_batch <= 0:
            raise ValueError("batch and subdivisions must be positive")
        return seen // per_batch

    def current_rate(self, seen: int, rng: np.random.Generator | None = None) -> float:
        """The learning rate after ``seen`` images."""
        batch_num = self.current_batch(seen)
        lr = self.learning_rate
        if batch_num < self.burn_in:
            return lr * (batch_num / self.burn_in) ** self.power
        policy = self.policy
        if policy is LearningRatePolicy.CONSTANT:
            return lr
        if policy is LearningRatePolicy.STEP:
            if self.step <= 0:
                raise ValueError("step policy needs a positive step")
            return lr * self.scale ** (batch_num // self.step)
        if policy is LearningRatePolicy.STEPS:
            rate = lr
            for step, scale in zip(self.steps, self.scales):
                if step > batch_num:
                    return rate
                rate *= scale
            return rate
        if policy is LearningRatePolicy.EXP:
            return lr * self.gamma**batch_num
        if policy is LearningRatePolicy.POLY:
            if self.max_batches == 0:
                raise ValueError("poly policy needs max_batches")
            return lr * (1 - batch_num / self.max_batches) ** self.power
        if policy is LearningRatePolicy.RANDOM:
            rng = rng if rng is not None else np.random.default_rng()
            return lr * float(rng.uniform(0, 1)) ** self.power
        if policy is LearningRatePolicy.SIG:
            exponent = self.gamma * (batch_num - self.step)
            if exponent > 700:
                return 0.0
            return lr * (1.0 / (1.0 + math.exp(exponent)))
        return lr


def network_cost(costs: Iterable[float]) -> float:
    """Average of the costs of the layers that report one; NaN when none do."""
    values = [float(cost) for cost in costs]
    if not values:
        return math.nan
    return sum(values) / len(values)


def _rows(m) -> np.ndarray:
    values = np.asarray(getattr(m, "vals", m), dtype=np.float64)
    if values.ndim != 2:
        raise ValueError("predictions must be two-dimensional")
    return values


def predicted_class(output) -> int:
    """Index of the first largest value."""
    values = np.asarray(output).reshape(-1)
    if values.size == 0:
        raise ValueError("output is empty")
    return int(np.argmax(values))


def compare_predictions(truth, first, second) -> tuple[int, int, int, int, float]:
    """Compare two classifiers on the same rows with McNemar's test.

    Returns ``(a, b, c, d, statistic)`` where ``a`` counts rows both got
    wrong, ``b`` rows only the second got right, ``c`` rows only the first
    got right and ``d`` rows both got right.
    """
    t, g1, g2 = _rows(truth), _rows(first), _rows(second)
    if not (len(t) == len(g1) == len(g2)):
        raise ValueError("truth and predictions must have the same number of rows")
    a = b = c = d = 0
    for truth_row, row1, row2 in zip(t, g1, g2):
        label = predicted_class(truth_row)
        right1 = predicted_class(row1) == label
        right2 = predicted_class(row2) == label
        if right1 and right2:
            d += 1
        elif right1:
            c += 1
        elif right2:
            b += 1
        else:
            a += 1
    num = (abs(b - c) - 1.0) ** 2
    den = b + c
    if den == 0:
        statistic = math.inf if num > 0 else math.nan
    else:
        statistic = num / den
    return a, b, c, d, statistic