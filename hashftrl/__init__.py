from hashftrl import config  # noqa: F401
from hashftrl.errors import (
    ConfigurationError,
    FtrlError,
    ShapeError,
    StateError,
    TypeMismatchError,
)
from hashftrl.modeling.labels import RegType
from hashftrl.modeling.models.ftrl import Ftrl
from hashftrl.modeling.params import FtrlParams
from hashftrl.modeling.serialization import FtrlState

__all__ = [
    "ConfigurationError",
    "Ftrl",
    "FtrlError",
    "FtrlParams",
    "FtrlState",
    "RegType",
    "ShapeError",
    "StateError",
    "TypeMismatchError",
]
