from __future__ import annotations
import logging
import logging.config
from pathlib import Path
import yaml

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(config_path: str = "configs/logging.yaml", level: int = logging.INFO) -> None:
    """Setup logging from a YAML dictConfig file, falling back to basicConfig."""
    path = Path(config_path)
    if not path.exists():
        logging.basicConfig(level=level, format=LOG_FORMAT)
        return

    with path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    logging.config.dictConfig(cfg)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the mongo_batch namespace."""
    if not name.startswith("mongo_batch"):
        name = f"mongo_batch.{name}"
    return logging.getLogger(name)
