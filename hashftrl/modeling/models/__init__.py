"""Model implementations.

Train/predict CLIs should depend on these abstractions, not the other way around.
"""

from .ftrl import Ftrl
from .registry import create, get_class

__all__ = [
    "Ftrl",
    "create",
    "get_class",
]
