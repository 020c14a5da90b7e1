# modeling/models/base.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import polars as pl


class BaseModel(ABC):
    """Interface commune à tous les modèles."""

    @abstractmethod
    def config(self) -> dict[str, Any]: ...

    @abstractmethod
    def fit(self, X: pl.DataFrame, y: pl.DataFrame) -> "BaseModel": ...

    @abstractmethod
    def predict(self, X: pl.DataFrame) -> pl.DataFrame:
        """Retourne une colonne de probabilités par label."""
        ...

    def predict_proba(self, X: pl.DataFrame) -> Optional[pl.DataFrame]:
        """Optionnel : proba par classe si dispo."""
        return None

    @abstractmethod
    def save(self, path: Path) -> None:
        """Sauvegarde le modèle sur le disque."""
        ...

    @classmethod
    @abstractmethod
    def load(cls, path: Path) -> "BaseModel": ...
