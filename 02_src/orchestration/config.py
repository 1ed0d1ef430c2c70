"""Project-level path helpers."""

from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "agent_system.db"
DEFAULT_LOG_PATH = LOGS_DIR / "agent-system.log"
DEFAULT_REPLAY_PATH = DATA_DIR / "replay.jsonl"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_project_path(value: PathLike | None, default: Path) -> Path:
    """Resolve a configured path relative to the project root."""
    if not value:
        return default
    candidate = Path(value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate
