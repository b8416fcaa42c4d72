import os

from dotenv import load_dotenv

load_dotenv()

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def resolve_data_path(raw: str | None = None) -> str:
    """Resolve DATA_PATH; relative values are anchored at the project root."""
    value = raw if raw is not None else os.environ.get("DATA_PATH")
    if not value:
        return _DEFAULT_DATA_PATH
    if not os.path.isabs(value):
        return os.path.join(PROJECT_ROOT, value)
    return value


DATA_PATH = resolve_data_path()

# Credits applied when neither the planned course nor its catalog record carries any.
DEFAULT_COURSE_CREDITS = _env_int("DEFAULT_COURSE_CREDITS", 3, minimum=0)

# Per-decision trace lines from the fulfillment assigner.
VERBOSE_ASSIGNMENT = _env_bool("VERBOSE_ASSIGNMENT", False)
