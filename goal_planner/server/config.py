# server/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

# .../goal_planner/server
BASE_DIR = Path(__file__).resolve().parent
# .../goal_planner
ROOT_DIR = BASE_DIR.parent

# Load .env from the project dir first, then any generic .env in cwd
load_dotenv(ROOT_DIR / ".env")
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[config] {name}={raw!r} is not a number; using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
MODEL = os.getenv("ANTHROPIC_MODEL") or "claude-sonnet-4-5-20250929"
MAX_TOKENS = _env_int("PLAN_MAX_TOKENS", 2048)

# Upper bound on one whole generation, in seconds
UPSTREAM_TIMEOUT = _env_float("PLAN_UPSTREAM_TIMEOUT", 60.0)

# Legacy /plan/start status entries
STATUS_TTL = _env_float("PLAN_STATUS_TTL", 3600.0)
STATUS_MAX_ENTRIES = _env_int("PLAN_STATUS_MAX_ENTRIES", 1000)

PORT = _env_int("PORT", 8787)
