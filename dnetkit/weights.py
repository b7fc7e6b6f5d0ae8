"""Reading and writing the binary weights file format."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

import numpy as np

_FLOAT = np.dtype("<f4")
_VERSION_LIMIT = 1000
CURRENT_MAJOR = 0
CURRENT_MINOR = 2
CURRENT_REVISION = 0


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


@dataclass(frozen=True)
class WeightsHeader:
    """Version numbers and the count of images seen during training."""

    major: int
    minor: int
    revision: int
    seen: int

    @property
    def transpose(self) -> bool:
        """Whether connected-layer weights in this file are stored transposed."""
        return self.major > _VERSION_LIMIT or self.minor > _VERSION_LIMIT

    @property
    def wide_seen(self) -> bool:
        """Whether the seen counter is stored as 64 bits rather than 32."""
        return (
            self.major * 10 + self.minor >= 2
            and self.major < _VERSION_LIMIT
            and self.minor < _VERSION_LIMIT
        )


def read_header(stream: BinaryIO) -> WeightsHeader:
    """Read the version triple and the seen counter from the start of a weights file."""
    major, minor, revision = struct.unpack("<iii", _read_exact(stream, 12))
    probe = WeightsHeader(major, minor, revision, 0)
    if probe.wide_seen:
        (seen,) = struct.unpack("<Q", _read_exact(stream, 8))
    else:
        (seen,) = struct.unpack("<i", _read_exact(stream, 4))
    return WeightsHeader(major, minor, revision, seen)


def write_header(stream: BinaryIO, seen: int) -> WeightsHeader:
    """Write a current-version header with a 64-bit seen counter."""
    if seen < 0:
        raise ValueError("seen count cannot be negative")
    stream.write(struct.pack("<iiiQ", CURRENT_MAJOR, CURRENT_MINOR, CURRENT_REVISION, seen))
    return WeightsHeader(CURRENT_MAJOR, CURRENT_MINOR, CURRENT_REVISION, seen)


def transpose_matrix(a, rows: int, cols: int) -> np.ndarray:
    """Return the flat row-major transpose of a flat ``rows`` x ``cols`` matrix."""
    values = np.asarray(a, dtype=np.float32).reshape(-1)
    if values.size < rows * cols:
        raise ValueError(f"matrix holds {values.size} values, needs {rows * cols}")
    return values[: rows * cols].reshape(rows, cols).T.reshape(-1).copy()


def pack_binary_weights(weights, n: int, size: int) -> bytes:
    """Encode binarized filters: per filter a float scale then one bit per weight.

    Each filter's scale is the magnitude of its first weight; a set bit marks a
    positive weight. Only whole groups of eight weights are stored.
    """
    values = np.asarray(weights, dtype=np.float32).reshape(-1)
    if values.size < n * size:
        raise ValueError(f"weights hold {values.size} values, need {n * size}")
    out = bytearray()
    groups = size // 8
    for i in range(n):
        filt = values[i * size : (i + 1) * size]
        mean = abs(float(filt[0])) if size else 0.0
        out += struct.pack("<f", mean)
        bits = filt[: groups * 8].reshape(groups, 8) > 0
        out += np.packbits(bits, axis=1, bitorder="little").reshape(-1).tobytes()
    return bytes(out)


def unpack_binary_weights(stream: BinaryIO, n: int, size: int) -> np.ndarray:
    """Decode filters written by :func:`pack_binary_weights` into ``n * size`` floats.

    Weights past the last whole group of eight in each filter are left at zero.
    """
    weights = np.zeros(n * size, dtype=np.float32)
    groups = size // 8
    for i in range(n):
        (mean,) = struct.unpack("<f", _read_exact(stream, 4))
        packed = np.frombuffer(_read_exact(stream, groups), dtype=np.uint8)
        bits = np.unpackbits(packed, bitorder="little").astype(bool)
        weights[i * size : i * size + groups * 8] = np.where(bits, mean, -mean)
    return weights


def read_floats(stream: BinaryIO, count: int) -> np.ndarray:
    """Read ``count`` little-endian 32-bit floats."""
    if count < 0:
        raise ValueError("count cannot be negative")
    data = _read_exact(stream, count * _FLOAT.itemsize)
    return np.frombuffer(data, dtype=_FLOAT).astype(np.float32)


def write_floats(stream: BinaryIO, values) -> int:
    """Write values as little-endian 32-bit floats; return how many were written."""
    array = np.asarray(values, dtype=_FLOAT).reshape(-1)
    stream.write(array.tobytes())
    return int(array.size)