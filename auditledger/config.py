# auditledger/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_DB_PATH = Path.home() / ".ledger" / "audit-ledger.db"


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime settings. Read from LEDGER_* environment variables; CLI flags override."""
    db_path: Path = DEFAULT_DB_PATH
    council_size: int = 3
    council_threshold: int = 2
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, db_path: Optional[Path] = None) -> "LedgerConfig":
        """Resolve settings in this order:
        1. explicit db_path argument (the --db flag)
        2. LEDGER_DB_PATH environment variable
        3. Default: ~/.ledger/audit-ledger.db
        """
        env = os.environ if env is None else env
        if db_path is not None:
            path = Path(db_path)
        elif env.get("LEDGER_DB_PATH"):
            path = Path(env["LEDGER_DB_PATH"])
        else:
            path = DEFAULT_DB_PATH
        return cls(
            db_path=path.expanduser().resolve(),
            council_size=_int_env(env, "LEDGER_COUNCIL_SIZE", 3),
            council_threshold=_int_env(env, "LEDGER_COUNCIL_THRESHOLD", 2),
            log_level=env.get("LEDGER_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def storage_uri(self) -> str:
        return f"sqlite://{self.db_path}"
