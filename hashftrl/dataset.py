from pathlib import Path

from loguru import logger
import numpy as np
import polars as pl
from sklearn.model_selection import train_test_split
import typer

from hashftrl.config import PROCESSED_DATA_DIR, RAW_DATA_DIR, TARGET_COL

app = typer.Typer()


@app.command()
def main(
    input_path: Path = RAW_DATA_DIR / "train.csv",
    output_dir: Path = PROCESSED_DATA_DIR,
    target_col: str = TARGET_COL,
    val_fraction: float = 0.2,
    stratify: bool = True,
    seed: int = 42,
):
    """Split a raw CSV into `train_split.csv` and `val_split.csv`."""

    df = pl.read_csv(input_path)
    if target_col not in df.columns:
        raise ValueError(f"Missing '{target_col}' in {input_path}. Got columns={df.columns}")

    indices = np.arange(df.height)
    train_idx, val_idx = train_test_split(
        indices,
        test_size=val_fraction,
        random_state=seed,
        stratify=df[target_col].to_numpy() if stratify else None,
    )

    is_val = np.zeros(df.height, dtype=bool)
    is_val[val_idx] = True

    output_dir.mkdir(parents=True, exist_ok=True)
    df.filter(pl.Series(~is_val)).write_csv(output_dir / "train_split.csv")
    df.filter(pl.Series(is_val)).write_csv(output_dir / "val_split.csv")

    logger.success(
        "Wrote {} train and {} validation rows to {}", len(train_idx), len(val_idx), output_dir
    )


if __name__ == "__main__":
    app()
