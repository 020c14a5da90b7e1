"""FTRL-Proximal training and prediction over hashed features.

Reference: McMahan et al., "Ad Click Prediction: a View from the Trenches"
https://www.eecs.tufts.edu/~dsculley/papers/ad-click-prediction.pdf

The engine is generic over the floating dtype: the dtype is chosen from
`double_precision` and every array and scalar of the update rule is kept in
it, so float32 and float64 models share the same code.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Sequence

from loguru import logger
import numpy as np
import polars as pl
import tqdm

from hashftrl.errors import ShapeError, StateError
from hashftrl.modeling.hasher import FeatureHasher, hash_colname
from hashftrl.modeling.importance import FeatureImportance
from hashftrl.modeling.labels import RegType, encode_targets, resolve_reg_type
from hashftrl.modeling.params import FtrlParams, validate_param
from hashftrl.modeling.store import ModelStore

# sigmoid argument is clamped to keep exp() finite in float32
MAX_LOGIT = 35.0

# parameters that size or type the weight arrays
_FROZEN_WHEN_TRAINED = ("nbins", "double_precision")


class FtrlEngine:
    def __init__(self, params: FtrlParams = FtrlParams()):
        self.params = params
        self.store: ModelStore | None = None
        self.importance: FeatureImportance | None = None
        self.colname_hashes: tuple[int, ...] | None = None
        self.reg_type = RegType.NONE

    # ---- parameters ---------------------------------------------------------

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(np.float64 if self.params.double_precision else np.float32)

    def set_param(self, name: str, value: Any) -> None:
        value = validate_param(name, value)
        if (
            name in _FROZEN_WHEN_TRAINED
            and self.is_trained()
            and value != getattr(self.params, name)
        ):
            raise StateError(
                f"Cannot set `{name}` for a trained model, reset this model or create a new one"
            )
        self.params = replace(self.params, **{name: value})

    def set_params(self, params: FtrlParams) -> None:
        """Install a whole parameter bundle, or nothing if any field is refused."""

        if self.is_trained():
            for name in _FROZEN_WHEN_TRAINED:
                if getattr(params, name) != getattr(self.params, name):
                    raise StateError(
                        f"Cannot set `{name}` for a trained model, "
                        f"reset this model or create a new one"
                    )
        self.params = params

    def _scalars(self):
        t = self.dtype.type
        p = self.params
        return t(p.alpha), t(p.beta), t(p.lambda1), t(p.lambda2)

    # ---- state --------------------------------------------------------------

    def is_trained(self) -> bool:
        return self.store is not None

    def reset(self) -> None:
        self.store = None
        self.importance = None
        self.colname_hashes = None
        self.reg_type = RegType.NONE

    @property
    def ncols(self) -> int:
        return 0 if self.colname_hashes is None else len(self.colname_hashes)

    def hasher(self) -> FeatureHasher:
        return FeatureHasher(self.params.nbins, self.params.interactions, self.colname_hashes)

    def get_model(self) -> pl.DataFrame | None:
        return self.store.to_frame() if self.is_trained() else None

    def set_model(self, frame: pl.DataFrame | None, nclassifiers: int) -> None:
        """Install a weight table; `None` or an empty frame resets the model."""

        if frame is None or frame.is_empty():
            self.reset()
            return
        self.store = ModelStore.from_frame(frame, self.params.nbins, self.dtype, nclassifiers)

    def get_importance(self, normalize: bool = True) -> pl.DataFrame | None:
        if not self.is_trained() or self.importance is None:
            return None
        return self.importance.to_frame(normalize=normalize)

    def set_importance(self, frame: pl.DataFrame) -> None:
        """Install raw importances; their names also fix the training columns."""

        importance = FeatureImportance.from_frame(frame, self.dtype)
        self.importance = importance
        self.colname_hashes = tuple(hash_colname(name) for name in importance.names)

    # ---- math ---------------------------------------------------------------

    def weights(self, z: np.ndarray, n: np.ndarray) -> np.ndarray:
        """Proximal step: materialize weights from the `z` and `n` accumulators."""

        alpha, beta, lambda1, lambda2 = self._scalars()
        with np.errstate(divide="ignore", invalid="ignore"):
            w = -(z - np.sign(z) * lambda1) / ((beta + np.sqrt(n)) / alpha + lambda2)
        return np.where(np.abs(z) <= lambda1, self.dtype.type(0), w).astype(self.dtype)

    def sigmoid(self, x):
        t = self.dtype.type
        x = np.clip(x, t(-MAX_LOGIT), t(MAX_LOGIT))
        return t(1) / (t(1) + np.exp(-x))

    # ---- training -----------------------------------------------------------

    def fit(self, X: pl.DataFrame, y: pl.DataFrame, labels: Sequence[Any], nthreads: int = 1):
        """Train on `X` against the single target column of `y`.

        The first call allocates one classifier per label; later calls keep
        training the current weights. Inputs are fully validated and hashed
        before any state changes.
        """

        if X.width == 0:
            raise ShapeError("Training frame must have at least one column")
        if X.height == 0:
            raise ShapeError("Training frame cannot be empty")
        if y.width != 1:
            raise ShapeError("Target frame must have exactly one column")
        if X.height != y.height:
            raise ShapeError(
                "Target column must have the same number of rows as the training frame"
            )
        if self.is_trained() and self.store.nclassifiers != len(labels):
            raise StateError(
                f"Model was trained for {self.store.nclassifiers} label(s), but {len(labels)} "
                f"are set now, reset this model or create a new one"
            )
        if self.colname_hashes is not None and X.width != self.ncols:
            raise ShapeError(
                f"Can only continue training on a frame that has {self.ncols} "
                f"column{'' if self.ncols == 1 else 's'}, got {X.width}"
            )

        targets, mask = encode_targets(y.to_series(0), labels)
        targets = targets.astype(self.dtype)

        colname_hashes = self.colname_hashes
        if colname_hashes is None:
            colname_hashes = tuple(hash_colname(name) for name in X.columns)
        hasher = FeatureHasher(self.params.nbins, self.params.interactions, colname_hashes)
        bins = hasher.hash_frame(X)

        if not self.is_trained():
            self.store = ModelStore(len(labels), self.params.nbins, self.dtype)
        if self.reg_type is RegType.NONE:
            self.reg_type = resolve_reg_type(labels)
        if self.colname_hashes is None:
            self.colname_hashes = colname_hashes
            self.importance = FeatureImportance(X.columns, self.dtype)

        rows = np.flatnonzero(mask)
        if len(rows) < X.height:
            logger.warning("Skipping {} rows with a missing target", X.height - len(rows))

        logger.info(
            "Training FTRL ({}) on {} rows, {} features per row, {} epoch(s), {} thread(s)",
            self.reg_type.name.lower(),
            len(rows),
            hasher.nfeatures,
            self.params.nepochs,
            nthreads,
        )

        chunks = [c for c in np.array_split(rows, max(1, nthreads)) if len(c)]
        owners = hasher.feature_owners()
        with ThreadPoolExecutor(max_workers=max(1, len(chunks))) as pool:
            for epoch in tqdm.tqdm(range(self.params.nepochs), desc="epochs", leave=False):
                if len(chunks) == 1:
                    partials = [self._train_rows(chunks[0], bins, targets, owners)]
                else:
                    partials = list(
                        pool.map(lambda c: self._train_rows(c, bins, targets, owners), chunks)
                    )
                for partial in partials:
                    self.importance.merge(partial)
                logger.debug("Epoch {} done", epoch + 1)

        return self.reg_type

    def _train_rows(
        self,
        rows: np.ndarray,
        bins: np.ndarray,
        targets: np.ndarray,
        owners: tuple[np.ndarray, np.ndarray],
    ) -> np.ndarray:
        """One worker's share of an epoch; returns its feature importance."""

        store = self.store
        alpha = self._scalars()[0]
        first, second = owners
        paired = second >= 0
        second = second[paired]
        fi = self.importance.new_partial()

        for r in rows:
            idx = bins[r]
            with store.locked(idx):
                for k in range(store.nclassifiers):
                    z = store.z[k]
                    n = store.n[k]
                    n_idx = n[idx]
                    w = self.weights(z[idx], n_idx)
                    g = self.sigmoid(w.sum()) - targets[k, r]
                    g2 = g * g
                    sigma = (np.sqrt(n_idx + g2) - np.sqrt(n_idx)) / alpha
                    np.add.at(z, idx, g - sigma * w)
                    np.add.at(n, idx, g2)

                    contrib = np.abs(g) * np.abs(w)
                    np.add.at(fi, first, contrib)
                    np.add.at(fi, second, contrib[paired])
        return fi

    # ---- prediction ---------------------------------------------------------

    def predict(self, X: pl.DataFrame, labels: Sequence[Any], nthreads: int = 1) -> pl.DataFrame:
        if not self.is_trained():
            raise StateError("Cannot make any predictions, train or set the model first")
        if self.colname_hashes is None:
            raise StateError(
                "Model has no training columns recorded, fit it or restore a full state first"
            )
        if X.width != self.ncols:
            raise ShapeError(
                f"Can only predict on a frame that has {self.ncols} "
                f"column{'' if self.ncols == 1 else 's'}, i.e. has the same number of "
                f"features as was used for model training"
            )
        if len(labels) != self.store.nclassifiers:
            raise StateError(
                f"Model holds {self.store.nclassifiers} classifier(s), "
                f"but {len(labels)} label(s) are set"
            )

        bins = self.hasher().hash_frame(X)
        weights = np.stack(
            [self.weights(self.store.z[k], self.store.n[k]) for k in range(len(labels))]
        )

        chunks = np.array_split(np.arange(X.height), max(1, min(nthreads, X.height)))
        if len(chunks) == 1:
            probs = self._predict_rows(bins, weights)
        else:
            with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
                parts = pool.map(lambda c: self._predict_rows(bins[c], weights), chunks)
                probs = np.concatenate(list(parts), axis=1)

        return pl.DataFrame(
            {str(label): pl.Series(str(label), probs[k]) for k, label in enumerate(labels)}
        )

    def _predict_rows(self, bins: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Probabilities of shape (nclassifiers, nrows); reads weights only."""

        logits = weights[:, bins].sum(axis=2)
        return self.sigmoid(logits).astype(self.dtype)
