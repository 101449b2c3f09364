import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off", ""}

DEFAULT_BATCH_SIZE = 5000
DEFAULT_DB_PATH = "data/fieldsweep.db"


def load_env() -> None:
    """Load .env from project root if present. Existing variables win."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in TRUTHY:
        return True
    if v in FALSY:
        return False
    raise ValueError(f"Expected a boolean value, got {value!r}")


def parse_batch_size(value: Optional[str], default: int = DEFAULT_BATCH_SIZE) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        size = int(value)
    except ValueError:
        raise ValueError(f"Batch size must be an integer, got {value!r}")
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    return size


@dataclass
class SweepSettings:
    """Injected configuration for a sweep run."""

    reprocess: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    db_path: Path = Path(DEFAULT_DB_PATH)
    gms_url: Optional[str] = None
    gms_token: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SweepSettings":
        env = os.environ if environ is None else environ
        return cls(
            reprocess=parse_bool(env.get("REPROCESS_DEFAULT_POLICY_FIELDS")),
            batch_size=parse_batch_size(env.get("BACKFILL_POLICY_FIELDS_BATCH_SIZE")),
            db_path=Path(env.get("FIELDSWEEP_DB") or DEFAULT_DB_PATH),
            gms_url=env.get("DATAHUB_GMS_URL") or None,
            gms_token=env.get("DATAHUB_GMS_TOKEN") or None,
            log_level=(env.get("FIELDSWEEP_LOG_LEVEL") or "INFO").upper(),
        )
