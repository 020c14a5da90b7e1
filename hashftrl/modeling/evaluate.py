from pathlib import Path

from loguru import logger
import numpy as np
import polars as pl
from sklearn import metrics
import typer

from hashftrl.config import MODELS_DIR, PROCESSED_DATA_DIR, TARGET_COL
from hashftrl.modeling.labels import encode_targets
from hashftrl.modeling.models.registry import get_class
from hashftrl.modeling.train import get_Xy_from_csv

app = typer.Typer()


@app.command()
def main(
    data_path: Path = PROCESSED_DATA_DIR / "val_split.csv",
    target_col: str = TARGET_COL,
    model_name: str = "ftrl",
    model_path: Path = MODELS_DIR / "ftrl.pkl",
    output_path: Path | None = None,
):
    """Evaluate a trained model on validation data.

    Loads a saved model, runs predictions, computes per-label log loss and ROC AUC.
    Optionally saves predictions to CSV.
    """

    logger.info("Evaluating model from {}", model_path)

    model = get_class(model_name).load(model_path)

    X, y = get_Xy_from_csv(data_path, target_col=target_col)

    logger.info("Running predictions on {} rows...", X.height)
    preds = model.predict(X)

    targets, mask = encode_targets(y.to_series(0), model.labels)
    for k, label in enumerate(preds.columns):
        y_true = targets[k][mask]
        y_prob = preds.to_series(k).to_numpy()[mask]
        loss = metrics.log_loss(y_true, y_prob, labels=[0, 1])
        if len(np.unique(y_true)) < 2:
            logger.warning("Label '{}' has a single class in {}, skipping AUC", label, data_path)
            logger.success("[{}] log loss: {:.4f}", label, loss)
            continue
        auc = metrics.roc_auc_score(y_true, y_prob)
        logger.success("[{}] log loss: {:.4f}, ROC AUC: {:.4f}", label, loss, auc)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        preds = preds.rename({c: f"p_{c}" for c in preds.columns})
        y.hstack(preds).write_csv(output_path)
        logger.success("Saved predictions to {}", output_path)


if __name__ == "__main__":
    app()
