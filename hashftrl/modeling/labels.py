from __future__ import annotations

from enum import IntEnum
from typing import Any, Iterable, Sequence

import numpy as np
import polars as pl

from hashftrl.config import DEFAULT_LABEL
from hashftrl.errors import ConfigurationError, TypeMismatchError


class RegType(IntEnum):
    NONE = 0
    BINOMIAL = 1
    MULTINOMIAL = 2


def normalize_labels(labels: Iterable[Any] | None) -> tuple:
    """Resolve the label list of a model.

    An empty list means a single binomial classifier named after the default
    label; a single label is meaningless for one-vs-rest and is rejected.
    """

    if labels is None:
        labels = ()
    elif isinstance(labels, (str, bytes)):
        raise ConfigurationError(f"Labels should be a list, got {labels!r}")
    labels = tuple(labels)

    if len(labels) == 1:
        raise ConfigurationError("List of labels can not have one element")
    if len(labels) == 0:
        return (DEFAULT_LABEL,)

    names = [str(label) for label in labels]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Labels should be distinct, got {list(labels)}")
    return labels


def restore_labels(labels: Iterable[Any] | None) -> tuple:
    """Labels read back from a stored state, already resolved once.

    The default binomial label is stored as a single element and is accepted
    here as is; anything else goes through `normalize_labels` again.
    """

    if labels is not None and tuple(labels) == (DEFAULT_LABEL,):
        return (DEFAULT_LABEL,)
    return normalize_labels(labels)


def resolve_reg_type(labels: Sequence[Any]) -> RegType:
    return RegType.BINOMIAL if len(labels) == 1 else RegType.MULTINOMIAL


def encode_targets(y: pl.Series, labels: Sequence[Any]) -> tuple[np.ndarray, np.ndarray]:
    """Turn the target column into one 0/1 row per classifier.

    Returns `(targets, mask)` where `targets` has shape (nclassifiers, nrows)
    and `mask` flags the rows with a non-null target.
    """

    mask = y.is_not_null().to_numpy()

    if len(labels) == 1:
        if y.dtype != pl.Boolean:
            raise TypeMismatchError(
                f"Target column must have a boolean type for binomial regression, "
                f"got {y.dtype}"
            )
        targets = y.fill_null(False).to_numpy().astype(np.int8).reshape(1, -1)
        return targets, mask

    y_str = y.cast(pl.Utf8)
    targets = np.stack(
        [(y_str == str(label)).fill_null(False).to_numpy() for label in labels]
    ).astype(np.int8)
    return targets, mask
