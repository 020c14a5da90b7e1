import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from tqdm import tqdm

# Load environment variables from .env file if it exists
load_dotenv()

# Paths
PROJ_ROOT = Path(__file__).resolve().parents[1]
logger.info(f"PROJ_ROOT path is: {PROJ_ROOT}")

DATA_DIR = PROJ_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
PROCESSED_DATA_DIR = DATA_DIR / "processed"

MODELS_DIR = PROJ_ROOT / "models"

# Columns
TARGET_COL = "target"
DEFAULT_LABEL = "target"

# FTRL defaults
DEFAULT_ALPHA = 0.005
DEFAULT_BETA = 1.0
DEFAULT_LAMBDA1 = 0.0
DEFAULT_LAMBDA2 = 1.0
DEFAULT_NBINS = 1_000_000
DEFAULT_NEPOCHS = 1
DEFAULT_INTERACTIONS = False
DEFAULT_DOUBLE_PRECISION = False

# Runtime
NTHREADS = int(os.getenv("HASHFTRL_NTHREADS", "0")) or (os.cpu_count() or 1)
LOG_LEVEL = os.getenv("HASHFTRL_LOG_LEVEL", "INFO")

# If tqdm is installed, configure loguru with tqdm.write
# https://github.com/Delgan/loguru/issues/135
logger.remove(0)
logger.add(lambda msg: tqdm.write(msg, end=""), colorize=True, level=LOG_LEVEL)
