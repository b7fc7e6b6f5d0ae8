"""Dense float matrices holding one sample per row."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(eq=False)
class Matrix:
    """A rows x cols matrix of float32 values."""

    vals: np.ndarray

    def __post_init__(self) -> None:
        self.vals = np.array(self.vals, dtype=np.float32)
        if self.vals.ndim != 2:
            raise ValueError("matrix values must be two-dimensional")

    @property
    def rows(self) -> int:
        return self.vals.shape[0]

    @property
    def cols(self) -> int:
        return self.vals.shape[1]

    def scale(self, scale: float) -> None:
        """Multiply every value by ``scale``."""
        self.vals *= scale

    def resize(self, size: int) -> None:
        """Change the number of rows, appending zero rows or dropping trailing ones."""
        if size < 0:
            raise ValueError("row count cannot be negative")
        if size > self.rows:
            extra = np.zeros((size - self.rows, self.cols), dtype=np.float32)
            self.vals = np.vstack([self.vals, extra])
        else:
            self.vals = self.vals[:size].copy()

    def add(self, other: Matrix) -> None:
        """Add ``other`` element-wise into this matrix."""
        if self.vals.shape != other.vals.shape:
            raise ValueError("matrices must have the same shape")
        self.vals += other.vals

    def copy(self) -> Matrix:
        return Matrix(self.vals.copy())

    def hold_out(self, n: int, rng: np.random.Generator | None = None) -> Matrix:
        """Remove ``n`` random rows and return them as a new matrix.

        Each removed row is replaced by the current last row.
        """
        if not 0 <= n <= self.rows:
            raise ValueError(f"cannot hold out {n} of {self.rows} rows")
        rng = rng if rng is not None else np.random.default_rng()
        remaining = list(self.vals)
        held = []
        for _ in range(n):
            index = int(rng.integers(len(remaining)))
            held.append(remaining[index])
            remaining[index] = remaining[-1]
            remaining.pop()
        cols = self.cols
        self.vals = np.array(remaining, dtype=np.float32).reshape(len(remaining), cols)
        return Matrix(np.array(held, dtype=np.float32).reshape(n, cols))

    def pop_column(self, c: int) -> np.ndarray:
        """Remove column ``c`` and return its values."""
        if not 0 <= c < self.cols:
            raise IndexError(f"column {c} outside matrix with {self.cols} columns")
        column = self.vals[:, c].copy()
        self.vals = np.delete(self.vals, c, axis=1)
        return column


def make_matrix(rows: int, cols: int) -> Matrix:
    """A zero-filled matrix."""
    return Matrix(np.zeros((rows, cols), dtype=np.float32))


def matrix_topk_accuracy(truth: Matrix, guess: Matrix, k: int) -> float:
    """Fraction of rows whose true class is among the ``k`` highest guesses."""
    if truth.rows == 0:
        raise ValueError("truth matrix has no rows")
    if guess.rows != truth.rows:
        raise ValueError("truth and guess must have the same number of rows")
    scores = guess.vals[:, : truth.cols]
    k = min(k, scores.shape[1])
    top = np.argsort(-scores, axis=1, kind="stable")[:, :k]
    hits = np.take_along_axis(truth.vals, top, axis=1) != 0
    return np.count_nonzero(hits.any(axis=1)) / truth.rows