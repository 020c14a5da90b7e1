from __future__ import annotations

from typing import Any, NamedTuple, Sequence

import polars as pl

from hashftrl.errors import ConfigurationError
from hashftrl.modeling.engine import FtrlEngine
from hashftrl.modeling.labels import RegType, restore_labels
from hashftrl.modeling.params import PARAM_NAMES, FtrlParams


class FtrlState(NamedTuple):
    """Full model state, in a fixed field order.

    params: the 8 hyperparameters in `FtrlParams` order.
    model: weight table (`z_k`, `n_k` columns) or None when untrained.
    feature_importances: raw, unnormalized importances or None.
    reg_type: `RegType` integer tag.
    labels: label tuple; None in records written without it.
    """

    params: tuple
    model: pl.DataFrame | None
    feature_importances: pl.DataFrame | None
    reg_type: int
    labels: tuple | None = None


def export_state(engine: FtrlEngine, labels: Sequence[Any]) -> FtrlState:
    return FtrlState(
        params=engine.params.to_tuple(),
        model=engine.get_model(),
        feature_importances=engine.get_importance(normalize=False),
        reg_type=int(engine.reg_type),
        labels=tuple(labels),
    )


def restore_state(state) -> tuple[FtrlEngine, tuple]:
    """Rebuild an engine and its labels from an exported state.

    The engine is created empty for the stored precision, then parameters,
    weights and importances are applied in that order. The regression type
    is installed as stored, without being resolved again.
    """

    state = FtrlState(*state)
    params = tuple(state.params)
    if len(params) != len(PARAM_NAMES):
        raise ConfigurationError(
            f"Tuple of FTRL parameters should have {len(PARAM_NAMES)} elements, "
            f"got: {len(params)}"
        )

    engine = FtrlEngine(FtrlParams(double_precision=params[PARAM_NAMES.index("double_precision")]))
    for name, value in zip(PARAM_NAMES, params):
        engine.set_param(name, value)

    labels = restore_labels(state.labels)
    engine.set_model(state.model, len(labels))
    if state.feature_importances is not None:
        engine.set_importance(state.feature_importances)
    engine.reg_type = RegType(state.reg_type)
    return engine, labels
