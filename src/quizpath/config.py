from __future__ import annotations

import logging
import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"

DEFAULT_DB_PATH = DATA_DIR / "quizpath.db"
DEFAULT_BANK_PATH = DATA_DIR / "subjects.yaml"

DB_PATH = Path(os.environ.get("QUIZPATH_DB_PATH", DEFAULT_DB_PATH))
BANK_PATH = Path(os.environ.get("QUIZPATH_BANK_PATH", DEFAULT_BANK_PATH))
LOG_LEVEL = os.environ.get("QUIZPATH_LOG_LEVEL", "INFO").upper()

RECENT_ATTEMPT_WINDOW = int(os.environ.get("QUIZPATH_RECENT_WINDOW", "100"))
DEFAULT_RECOMMENDATIONS = 3
LEADERBOARD_MIN_ATTEMPTS = 10
LEADERBOARD_LIMIT = 10

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    global _configured
    resolved = (level or LOG_LEVEL).upper()
    if not _configured:
        logging.basicConfig(level=resolved, format=_LOG_FORMAT)
        _configured = True
    logging.getLogger("quizpath").setLevel(resolved)


__all__ = [
    "BANK_PATH",
    "configure_logging",
    "DATA_DIR",
    "DB_PATH",
    "DEFAULT_BANK_PATH",
    "DEFAULT_DB_PATH",
    "DEFAULT_RECOMMENDATIONS",
    "LEADERBOARD_LIMIT",
    "LEADERBOARD_MIN_ATTEMPTS",
    "LOG_LEVEL",
    "PROJECT_ROOT",
    "RECENT_ATTEMPT_WINDOW",
]
