from typing import Any, Dict, Type

from hashftrl.errors import ConfigurationError
from hashftrl.modeling.models.base import BaseModel

_REGISTRY: Dict[str, Type[BaseModel]] = {}


def register(name: str):
    def deco(cls: Type[BaseModel]):
        _REGISTRY[name] = cls
        return cls

    return deco


def create(name: str, **kwargs) -> Any:
    return get_class(name)(**kwargs)


def get_class(name: str) -> Type[BaseModel]:
    """Get model class without instantiating."""
    if name not in _REGISTRY:
        raise ConfigurationError(f"Unknown model {name!r}, registered: {sorted(_REGISTRY)}")
    return _REGISTRY[name]