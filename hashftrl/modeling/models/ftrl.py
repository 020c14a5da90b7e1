from __future__ import annotations

from pathlib import Path
import pickle
from typing import Any, Iterable

from loguru import logger
import polars as pl

from hashftrl.config import NTHREADS
from hashftrl.errors import ConfigurationError
from hashftrl.modeling.engine import FtrlEngine
from hashftrl.modeling.labels import RegType, normalize_labels
from hashftrl.modeling.models.base import BaseModel
from hashftrl.modeling.models.registry import register
from hashftrl.modeling.params import FtrlParams, check_count, resolve_params
from hashftrl.modeling.serialization import FtrlState, export_state, restore_state


def _param_property(name: str, doc: str) -> property:
    def fget(self):
        return getattr(self._engine.params, name)

    def fset(self, value):
        self._engine.set_param(name, value)

    return property(fget, fset, doc=doc)


@register("ftrl")
class Ftrl(BaseModel):
    """Follow the Regularized Leader (FTRL-Proximal) model with hashing trick.

    Binomial when no labels are given (the target column must be boolean),
    one-vs-rest multinomial otherwise. Features are hashed into `nbins` bins,
    optionally together with every pair of columns (`interactions`).

    Training runs on `nthreads` worker threads over row ranges; threads share
    the weight arrays and lock only the bins a row touches. With more than one
    thread the order of updates varies between runs, so models trained with
    different thread counts are not bit-identical. Use `nthreads=1` for a
    reproducible model.

    See https://www.eecs.tufts.edu/~dsculley/papers/ad-click-prediction.pdf
    """

    def __init__(
        self,
        params: FtrlParams | None = None,
        labels: Iterable[Any] | None = None,
        alpha: float | None = None,
        beta: float | None = None,
        lambda1: float | None = None,
        lambda2: float | None = None,
        nbins: int | None = None,
        nepochs: int | None = None,
        interactions: bool | None = None,
        double_precision: bool | None = None,
        nthreads: int | None = None,
    ):
        resolved = resolve_params(
            params,
            alpha=alpha,
            beta=beta,
            lambda1=lambda1,
            lambda2=lambda2,
            nbins=nbins,
            nepochs=nepochs,
            interactions=interactions,
            double_precision=double_precision,
        )
        self._labels = normalize_labels(labels)
        self._engine = FtrlEngine(resolved)
        self._nthreads = NTHREADS
        if nthreads is not None:
            self.nthreads = nthreads

    alpha = _param_property("alpha", "`alpha` in per-coordinate FTRL-Proximal algorithm")
    beta = _param_property("beta", "`beta` in per-coordinate FTRL-Proximal algorithm")
    lambda1 = _param_property("lambda1", "L1 regularization parameter")
    lambda2 = _param_property("lambda2", "L2 regularization parameter")
    nbins = _param_property("nbins", "Number of bins to be used for the hashing trick")
    nepochs = _param_property("nepochs", "Number of epochs to train a model")
    interactions = _param_property(
        "interactions", "Switch to enable second order feature interactions"
    )
    double_precision = _param_property(
        "double_precision", "Whether to use double precision arithmetic for modeling"
    )

    @property
    def params(self) -> FtrlParams:
        return self._engine.params

    @params.setter
    def params(self, params) -> None:
        self._engine.set_params(resolve_params(params))

    def config(self) -> dict[str, Any]:
        return self.params.to_dict()

    @property
    def nthreads(self) -> int:
        return self._nthreads

    @nthreads.setter
    def nthreads(self, value: int) -> None:
        self._nthreads = check_count("nthreads", value, positive=True)

    @property
    def labels(self) -> list:
        return list(self._labels)

    @labels.setter
    def labels(self, labels: Iterable[Any]) -> None:
        self._labels = normalize_labels(labels)

    @property
    def reg_type(self) -> RegType:
        return self._engine.reg_type

    @property
    def model(self) -> pl.DataFrame | None:
        """Weight table: a `z_k` and an `n_k` column per label, `nbins` rows."""
        return self._engine.get_model()

    @model.setter
    def model(self, frame: pl.DataFrame | None) -> None:
        self._engine.set_model(frame, len(self._labels))

    @property
    def feature_importances(self) -> pl.DataFrame | None:
        """Per-column weight contributions accumulated during training, scaled to [0, 1]."""
        return self._engine.get_importance(normalize=True)

    @property
    def colname_hashes(self) -> tuple[int, ...] | None:
        return self._engine.colname_hashes if self.is_trained() else None

    def is_trained(self) -> bool:
        return self._engine.is_trained()

    def fit(self, X: pl.DataFrame, y: pl.DataFrame) -> "Ftrl":
        self._engine.fit(X, y, self._labels, nthreads=self._nthreads)
        return self

    def predict(self, X: pl.DataFrame) -> pl.DataFrame:
        return self._engine.predict(X, self._labels, nthreads=self._nthreads)

    def predict_proba(self, X: pl.DataFrame) -> pl.DataFrame:
        return self.predict(X)

    def reset(self) -> None:
        """Drop weights and feature importances, keeping parameters and labels."""
        self._engine.reset()

    # ---- persistence --------------------------------------------------------

    def export_state(self) -> FtrlState:
        return export_state(self._engine, self._labels)

    def restore_state(self, state) -> None:
        if state is None:
            raise ConfigurationError("Cannot restore a model from an empty state")
        self._engine, self._labels = restore_state(state)

    def __getstate__(self):
        return {"state": tuple(self.export_state()), "nthreads": self._nthreads}

    def __setstate__(self, state) -> None:
        self._nthreads = state.get("nthreads", NTHREADS)
        self.restore_state(state["state"])

    def save(self, path: Path) -> None:
        """Save model using pickle."""
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            pickle.dump(self, f, protocol=5)

        logger.info("Saved FTRL model to {}", path)

    @classmethod
    def load(cls, path: Path) -> "Ftrl":
        """Load model from pickle."""
        with open(path, "rb") as f:
            model = pickle.load(f)

        if not isinstance(model, cls):
            raise TypeError(f"{path} does not contain a {cls.__name__} model")
        logger.info("Loaded FTRL model from {}", path)
        return model

    def __repr__(self) -> str:
        return f"Ftrl({self.params}, labels={self.labels}, trained={self.is_trained()})"
