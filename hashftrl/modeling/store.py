from __future__ import annotations

from contextlib import contextmanager
import threading
from typing import Iterator

import numpy as np
import polars as pl

from hashftrl.errors import ConfigurationError, ShapeError, TypeMismatchError

MAX_LOCK_STRIPES = 4096


def polars_dtype(dtype: np.dtype) -> pl.DataType:
    return pl.Float64 if np.dtype(dtype) == np.float64 else pl.Float32


class ModelStore:
    """Per-classifier `z` and `n` arrays of length `nbins`.

    Row `k` of `z`/`n` belongs to the k-th label. Bins are guarded by an arena
    of striped locks (bin `i` -> lock `i % nstripes`) so that training threads
    only serialize on the bins they actually share.
    """

    def __init__(self, nclassifiers: int, nbins: int, dtype: np.dtype):
        self.dtype = np.dtype(dtype)
        self.z = np.zeros((nclassifiers, nbins), dtype=self.dtype)
        self.n = np.zeros((nclassifiers, nbins), dtype=self.dtype)
        self.nstripes = min(nbins, MAX_LOCK_STRIPES)
        self._locks = [threading.Lock() for _ in range(self.nstripes)]

    @property
    def nclassifiers(self) -> int:
        return self.z.shape[0]

    @property
    def nbins(self) -> int:
        return self.z.shape[1]

    @contextmanager
    def locked(self, bins: np.ndarray) -> Iterator[None]:
        """Hold the locks of `bins` for one read-modify-write transaction.

        Stripes are taken in ascending order, which keeps concurrent
        transactions deadlock-free.
        """

        stripes = np.unique(bins % self.nstripes)
        acquired = []
        try:
            for s in stripes:
                lock = self._locks[s]
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def to_frame(self) -> pl.DataFrame:
        columns = {}
        for k in range(self.nclassifiers):
            columns[f"z_{k}"] = pl.Series(f"z_{k}", self.z[k].copy())
            columns[f"n_{k}"] = pl.Series(f"n_{k}", self.n[k].copy())
        return pl.DataFrame(columns)

    @classmethod
    def from_frame(
        cls, frame: pl.DataFrame, nbins: int, dtype: np.dtype, nclassifiers: int
    ) -> "ModelStore":
        """Validate an externally supplied weight table and copy it in."""

        if frame.height != nbins or frame.width % 2 != 0:
            raise ShapeError(
                f"Model frame must have {nbins} rows, and an even number of columns, "
                f"whereas your frame has {frame.height} row{'' if frame.height == 1 else 's'} "
                f"and {frame.width} column{'' if frame.width == 1 else 's'}"
            )
        if frame.width // 2 != nclassifiers:
            raise ShapeError(
                f"Model frame must have {2 * nclassifiers} columns, i.e. a `z` and an `n` "
                f"column for each of the {nclassifiers} label(s), got {frame.width}"
            )

        expected = polars_dtype(dtype)
        for i, col in enumerate(frame.get_columns()):
            if col.dtype != expected:
                raise TypeMismatchError(
                    f"Column {i} in the model frame should have a type of {expected}, "
                    f"whereas your frame has the following column type: {col.dtype}"
                )
            if col.null_count() > 0:
                raise ShapeError(f"Column {i} in the model frame cannot have missing values")
            if i % 2 and (col < 0).any():
                raise ConfigurationError(f"Column {i} cannot have negative values")

        store = cls(nclassifiers, nbins, dtype)
        for k in range(nclassifiers):
            store.z[k] = frame.to_series(2 * k).to_numpy()
            store.n[k] = frame.to_series(2 * k + 1).to_numpy()
        return store
