from pathlib import Path
from typing import Optional

from loguru import logger
import polars as pl
import typer

from hashftrl.config import MODELS_DIR, PROCESSED_DATA_DIR, TARGET_COL
from hashftrl.metrics import one_vs_rest_logloss
from hashftrl.modeling.labels import encode_targets
from hashftrl.modeling.models.registry import get_class
from hashftrl.modeling.params import FtrlParams

app = typer.Typer()


def get_Xy_from_csv(
    data_csv: Path,
    target_col: str = TARGET_COL,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Read a CSV and split it into the feature frame and the target frame."""

    logger.info("Loading data from {}", data_csv)
    df = pl.read_csv(data_csv)

    if target_col not in df.columns:
        raise ValueError(f"Missing '{target_col}' in {data_csv}. Got columns={df.columns}")

    X = df.select(pl.exclude(target_col))
    if X.width == 0:
        raise ValueError(f"No feature columns found in {data_csv}")
    y = df.select(target_col)

    return X, y


def score(model, X: pl.DataFrame, y: pl.DataFrame) -> float:
    """One-vs-rest log loss of the model on (X, y)."""

    targets, mask = encode_targets(y.to_series(0), model.labels)
    probs = model.predict(X).to_numpy()
    return one_vs_rest_logloss(targets.T[mask], probs[mask])


@app.command()
def main(
    data_path: Path = PROCESSED_DATA_DIR / "train_split.csv",
    target_col: str = TARGET_COL,
    model_name: str = "ftrl",
    model_out: Path = MODELS_DIR / "ftrl.pkl",
    labels: Optional[list[str]] = typer.Option(None, "--label", help="Repeat for multinomial"),
    alpha: float = FtrlParams.alpha,
    beta: float = FtrlParams.beta,
    lambda1: float = FtrlParams.lambda1,
    lambda2: float = FtrlParams.lambda2,
    nbins: int = FtrlParams.nbins,
    nepochs: int = FtrlParams.nepochs,
    interactions: bool = FtrlParams.interactions,
    double_precision: bool = FtrlParams.double_precision,
    nthreads: Optional[int] = None,
):
    """Train a model and save it.

    This CLI just orchestrates: load data → train → save.
    """

    logger.info("Training model '{}'...", model_name)

    model_cls = get_class(model_name)

    X, y = get_Xy_from_csv(data_path, target_col=target_col)

    params = FtrlParams(
        alpha=alpha,
        beta=beta,
        lambda1=lambda1,
        lambda2=lambda2,
        nbins=nbins,
        nepochs=nepochs,
        interactions=interactions,
        double_precision=double_precision,
    )
    model = model_cls(params=params, labels=labels or [], nthreads=nthreads).fit(X, y)

    logger.info("Training complete. In-sample log loss: {:.4f}", score(model, X, y))

    importances = model.feature_importances
    if importances is not None:
        top = importances.sort("feature_importance", descending=True).head(5)
        for name, value in top.iter_rows():
            logger.info("  {}: {:.4f}", name, value)

    model.save(model_out)

    logger.success("Saved trained model to {}", model_out)


if __name__ == "__main__":
    app()
