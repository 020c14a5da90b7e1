from __future__ import annotations

import numpy as np
import polars as pl
import pytest

from hashftrl import Ftrl


@pytest.fixture
def bool_frames() -> tuple[pl.DataFrame, pl.DataFrame]:
    X = pl.DataFrame({"flag": [True, False, True, False]})
    y = pl.DataFrame({"target": [True, True, False, False]})
    return X, y


@pytest.fixture
def small_model() -> Ftrl:
    return Ftrl(
        alpha=0.1,
        beta=1.0,
        lambda1=0.0,
        lambda2=0.0,
        nbins=4,
        nepochs=1,
        interactions=False,
        double_precision=True,
        nthreads=1,
    )


@pytest.fixture
def mixed_frames() -> tuple[pl.DataFrame, pl.DataFrame]:
    """Categorical + numeric features where `color == "red"` drives the target."""

    rng = np.random.default_rng(0)
    n = 300
    colors = rng.choice(["red", "green", "blue"], size=n)
    sizes = rng.integers(0, 5, size=n)
    noise = rng.random(n)
    X = pl.DataFrame(
        {
            "color": colors.tolist(),
            "size": sizes.tolist(),
            "noise": np.round(noise, 1).tolist(),
        }
    )
    y = pl.DataFrame({"target": (colors == "red").tolist()})
    return X, y


@pytest.fixture
def multinomial_frames() -> tuple[pl.DataFrame, pl.DataFrame]:
    animals = ["cat", "dog", "bird"] * 40
    sounds = {"cat": "meow", "dog": "woof", "bird": "tweet"}
    X = pl.DataFrame(
        {
            "sound": [sounds[a] for a in animals],
            "legs": [2 if a == "bird" else 4 for a in animals],
        }
    )
    y = pl.DataFrame({"animal": animals})
    return X, y
