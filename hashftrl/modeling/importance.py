from __future__ import annotations

from typing import Sequence

import numpy as np
import polars as pl

from hashftrl.errors import ConfigurationError, ShapeError, TypeMismatchError
from hashftrl.modeling.store import polars_dtype

NAME_COL = "feature_name"
VALUE_COL = "feature_importance"


class FeatureImportance:
    """Accumulated weight contributions, one value per training column."""

    def __init__(self, names: Sequence[str], dtype: np.dtype):
        self.names = [str(name) for name in names]
        self.dtype = np.dtype(dtype)
        self.values = np.zeros(len(self.names), dtype=self.dtype)

    def new_partial(self) -> np.ndarray:
        """Zeroed per-worker accumulator, merged back with `merge`."""
        return np.zeros_like(self.values)

    def merge(self, partial: np.ndarray) -> None:
        self.values += partial.astype(self.dtype, copy=False)

    def to_frame(self, normalize: bool = True) -> pl.DataFrame:
        values = self.values.copy()
        if normalize:
            top = values.max() if len(values) else 0
            if top > 0:
                values = values / top
        return pl.DataFrame(
            {
                NAME_COL: pl.Series(NAME_COL, self.names, dtype=pl.Utf8),
                VALUE_COL: pl.Series(VALUE_COL, values.astype(self.dtype)),
            }
        )

    @classmethod
    def from_frame(cls, frame: pl.DataFrame, dtype: np.dtype) -> "FeatureImportance":
        if frame.columns != [NAME_COL, VALUE_COL]:
            raise ShapeError(
                f"Feature importance frame must have columns {[NAME_COL, VALUE_COL]}, "
                f"got {frame.columns}"
            )
        expected = polars_dtype(dtype)
        if frame[VALUE_COL].dtype != expected:
            raise TypeMismatchError(
                f"Feature importances should have a type of {expected}, "
                f"got {frame[VALUE_COL].dtype}"
            )
        values = frame[VALUE_COL].to_numpy()
        if np.isnan(values).any() or (values < 0).any():
            raise ConfigurationError("Feature importances cannot be negative or missing")

        fi = cls(frame[NAME_COL].cast(pl.Utf8).to_list(), dtype)
        fi.values[:] = values
        return fi
