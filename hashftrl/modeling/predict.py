from pathlib import Path

from loguru import logger
import polars as pl
import typer

from hashftrl.config import MODELS_DIR, PROCESSED_DATA_DIR, TARGET_COL
from hashftrl.modeling.models.registry import get_class

app = typer.Typer()


@app.command()
def main(
    features_path: Path = PROCESSED_DATA_DIR / "test.csv",
    model_name: str = "ftrl",
    model_path: Path = MODELS_DIR / "ftrl.pkl",
    predictions_path: Path = PROCESSED_DATA_DIR / "predictions_test.csv",
    drop_col: str = TARGET_COL,
):
    """Write one probability column per label for every row of a CSV."""

    model = get_class(model_name).load(model_path)

    X = pl.read_csv(features_path)
    if drop_col in X.columns:
        logger.warning("Dropping column '{}' before predicting", drop_col)
        X = X.drop(drop_col)

    logger.info("Running predictions on {} rows...", X.height)
    preds = model.predict(X)

    predictions_path.parent.mkdir(parents=True, exist_ok=True)
    preds.write_csv(predictions_path)
    logger.success("Saved predictions to {}", predictions_path)


if __name__ == "__main__":
    app()
