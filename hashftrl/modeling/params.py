from __future__ import annotations

from dataclasses import astuple, dataclass, fields
import math
from numbers import Integral, Real
from typing import Any

from hashftrl.config import (
    DEFAULT_ALPHA,
    DEFAULT_BETA,
    DEFAULT_DOUBLE_PRECISION,
    DEFAULT_INTERACTIONS,
    DEFAULT_LAMBDA1,
    DEFAULT_LAMBDA2,
    DEFAULT_NBINS,
    DEFAULT_NEPOCHS,
)
from hashftrl.errors import ConfigurationError


def check_real(name: str, value: Any, *, positive: bool = False) -> float:
    """Validate a real hyperparameter and return it as a float.

    `positive=True` rejects zero, otherwise only negative values are rejected.
    """

    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationError(f"`{name}` should be a real number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(f"`{name}` should be finite, got {value}")
    if positive and value <= 0:
        raise ConfigurationError(f"`{name}` should be positive: {value}")
    if value < 0:
        raise ConfigurationError(f"`{name}` cannot be negative: {value}")
    return value


def check_count(name: str, value: Any, *, positive: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ConfigurationError(f"`{name}` should be an integer, got {value!r}")
    value = int(value)
    if positive and value <= 0:
        raise ConfigurationError(f"`{name}` should be positive: {value}")
    if value < 0:
        raise ConfigurationError(f"`{name}` cannot be negative: {value}")
    return value


def check_flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"`{name}` should be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class FtrlParams:
    """FTRL-Proximal hyperparameters.

    alpha, beta: per-coordinate learning rate `alpha / (beta + sqrt(n))`.
    lambda1, lambda2: L1 and L2 regularization.
    nbins: number of bins for the hashing trick.
    nepochs: number of passes over the training frame.
    interactions: also hash every pair of columns.
    double_precision: float64 weights instead of float32.

    The field order is the order of the persisted parameter tuple.
    """

    alpha: float = DEFAULT_ALPHA
    beta: float = DEFAULT_BETA
    lambda1: float = DEFAULT_LAMBDA1
    lambda2: float = DEFAULT_LAMBDA2
    nbins: int = DEFAULT_NBINS
    nepochs: int = DEFAULT_NEPOCHS
    interactions: bool = DEFAULT_INTERACTIONS
    double_precision: bool = DEFAULT_DOUBLE_PRECISION

    def __post_init__(self):
        # frozen dataclass: normalized values go through object.__setattr__
        for name, value in validate_params(**self.to_dict()).items():
            object.__setattr__(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def to_tuple(self) -> tuple:
        return astuple(self)

    @classmethod
    def from_tuple(cls, values) -> "FtrlParams":
        values = tuple(values)
        if len(values) != len(PARAM_NAMES):
            raise ConfigurationError(
                f"Tuple of FTRL parameters should have {len(PARAM_NAMES)} elements, "
                f"got: {len(values)}"
            )
        return cls(*values)


_VALIDATORS = {
    "alpha": lambda v: check_real("alpha", v, positive=True),
    "beta": lambda v: check_real("beta", v),
    "lambda1": lambda v: check_real("lambda1", v),
    "lambda2": lambda v: check_real("lambda2", v),
    "nbins": lambda v: check_count("nbins", v, positive=True),
    "nepochs": lambda v: check_count("nepochs", v),
    "interactions": lambda v: check_flag("interactions", v),
    "double_precision": lambda v: check_flag("double_precision", v),
}

PARAM_NAMES = tuple(_VALIDATORS)


def validate_param(name: str, value: Any) -> Any:
    if name not in _VALIDATORS:
        raise ConfigurationError(f"Unknown FTRL parameter `{name}`. Known: {list(PARAM_NAMES)}")
    return _VALIDATORS[name](value)


def validate_params(**values) -> dict[str, Any]:
    return {name: validate_param(name, value) for name, value in values.items()}


def resolve_params(params: FtrlParams | None = None, **individual) -> FtrlParams:
    """Build the parameter set from either a bundle or individual values.

    Individual values left as None take their defaults. Passing a bundle
    together with any individual value is a configuration error.
    """

    given = {name: value for name, value in individual.items() if value is not None}
    if params is not None:
        if given:
            raise ConfigurationError(
                "You can either pass all the parameters with `params` or any of the "
                "individual parameters with `alpha`, `beta`, `lambda1`, `lambda2`, "
                "`nbins`, `nepochs`, `interactions` or `double_precision`, "
                "but not both at the same time"
            )
        if isinstance(params, FtrlParams):
            return params
        if isinstance(params, dict):
            return FtrlParams(**params)
        # any object exposing the parameter attributes, e.g. a namedtuple
        try:
            return FtrlParams(**{name: getattr(params, name) for name in PARAM_NAMES})
        except AttributeError as e:
            raise ConfigurationError(f"`params` is missing an FTRL parameter: {e}") from e

    unknown = set(given) - set(PARAM_NAMES)
    if unknown:
        raise ConfigurationError(f"Unknown FTRL parameters: {sorted(unknown)}")
    return FtrlParams(**given)
