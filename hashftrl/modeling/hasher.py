"""Hashing trick for arbitrary polars columns.

Every (column, value) pair is mapped to a bin in [0, nbins). The bin is the
only index into the weight arrays, so hashing must be identical between fit
and predict and between processes: no Python `hash()` and no random seeds.

Single-column features hash the value with blake2b and shift it by the hash
of the column name. Pairwise interactions go through a different function, a
splitmix64 finalizer over both column hashes, so that a pair never reuses the
single-column hashing path.
"""

from __future__ import annotations

from hashlib import blake2b
import math
import struct
from typing import Any, Sequence

import numpy as np
import polars as pl

_COLNAME_PERSON = b"hashftrl-col"
_VALUE_PERSON = b"hashftrl-val"

_INTERACTION_SEED = np.uint64(0x9E3779B97F4A7C15)
_MIX1 = np.uint64(0xBF58476D1CE4E5B9)
_MIX2 = np.uint64(0x94D049BB133111EB)


def _digest(key: bytes, person: bytes) -> int:
    return int.from_bytes(blake2b(key, digest_size=8, person=person).digest(), "little")


def hash_colname(name: str) -> int:
    return _digest(str(name).encode("utf-8"), _COLNAME_PERSON)


def value_key(value: Any) -> bytes:
    """Canonical byte representation of a cell value.

    Numbers are keyed by value, not by column width or type: an Int32 column,
    an Int64 column and a Float64 column holding the same integral numbers hash
    the same. `-0.0` is keyed as `0`.
    """

    if value is None:
        return b"n"
    if isinstance(value, bool):
        return b"b1" if value else b"b0"
    if isinstance(value, int):
        return b"i" + str(value).encode("ascii")
    if isinstance(value, float):
        if math.isnan(value):
            return b"n"
        if value.is_integer():
            return b"i" + str(int(value)).encode("ascii")
        return b"f" + struct.pack("<d", value)
    if isinstance(value, str):
        return b"s" + value.encode("utf-8")
    if isinstance(value, bytes):
        return b"y" + value
    return b"o" + str(value).encode("utf-8")


def hash_value(value: Any) -> int:
    return _digest(value_key(value), _VALUE_PERSON)


def _rotl(x: np.ndarray, r: int) -> np.ndarray:
    return (x << np.uint64(r)) | (x >> np.uint64(64 - r))


def mix_pair(h_a: np.ndarray, h_b: np.ndarray) -> np.ndarray:
    """Hash of an unordered column pair, given the per-column feature hashes."""

    with np.errstate(over="ignore"):
        z = (h_a ^ _rotl(h_b, 31)) + _INTERACTION_SEED
        z = (z ^ (z >> np.uint64(30))) * _MIX1
        z = (z ^ (z >> np.uint64(27))) * _MIX2
        return z ^ (z >> np.uint64(31))


class FeatureHasher:
    """Maps the rows of a frame to bin indices.

    The column identity is fixed by `colname_hashes`, recorded once when the
    model is first trained; prediction frames are hashed positionally against
    the same hashes.
    """

    def __init__(self, nbins: int, interactions: bool, colname_hashes: Sequence[int]):
        self.nbins = int(nbins)
        self.interactions = bool(interactions)
        self.colname_hashes = np.asarray(colname_hashes, dtype=np.uint64)

    @classmethod
    def for_columns(cls, nbins: int, interactions: bool, names: Sequence[str]) -> "FeatureHasher":
        return cls(nbins, interactions, [hash_colname(name) for name in names])

    @property
    def ncols(self) -> int:
        return len(self.colname_hashes)

    @property
    def nfeatures(self) -> int:
        n = self.ncols
        return n + n * (n - 1) // 2 if self.interactions else n

    def pairs(self) -> list[tuple[int, int]]:
        if not self.interactions:
            return []
        n = self.ncols
        return [(i, j) for i in range(n) for j in range(i + 1, n)]

    def feature_owners(self) -> tuple[np.ndarray, np.ndarray]:
        """Source columns of every feature slot.

        Returns `(first, second)`; `second` is -1 for single-column features.
        """

        n = self.ncols
        first = list(range(n))
        second = [-1] * n
        for i, j in self.pairs():
            first.append(i)
            second.append(j)
        return np.asarray(first, dtype=np.int64), np.asarray(second, dtype=np.int64)

    def hash_column(self, series: pl.Series, colname_hash: int) -> np.ndarray:
        cache: dict[bytes, int] = {}
        out = np.empty(len(series), dtype=np.uint64)
        for i, value in enumerate(series.to_list()):
            key = value_key(value)
            h = cache.get(key)
            if h is None:
                h = cache[key] = _digest(key, _VALUE_PERSON)
            out[i] = (h + colname_hash) & 0xFFFFFFFFFFFFFFFF
        return out

    def hash_frame(self, X: pl.DataFrame) -> np.ndarray:
        """Bin indices of shape (nrows, nfeatures), int64."""

        hashes = [
            self.hash_column(X.to_series(j), int(self.colname_hashes[j])) for j in range(X.width)
        ]
        for i, j in self.pairs():
            hashes.append(mix_pair(hashes[i], hashes[j]))

        if not hashes:
            return np.zeros((X.height, 0), dtype=np.int64)
        h = np.stack(hashes, axis=1)
        return (h % np.uint64(self.nbins)).astype(np.int64)
