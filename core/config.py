"""Runtime configuration.

Settings are read from the environment, with a `.env` file at the repository
root loaded first when present.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Configuration for the interchange engine and its adapters.

    Attributes:
        api_url: Base URL of the ledger REST API (the Store)
        api_timeout: Request timeout for Store calls, seconds
        dataset_name: Prefix used in export/backup file names
        export_dir: Directory where exported workbooks are written
        progress_reset_delay: Seconds a finished progress value stays visible
        drive_api_url: Blob transport metadata/download endpoint
        drive_upload_url: Blob transport upload endpoint
        drive_timeout: Request timeout for transport calls, seconds
        credential_dir: Directory for the encrypted credential store
        credential_encryption_key: Base64 AES-256 key; in-memory store if unset
        log_level: Logging level name
        log_json: Emit JSON log lines instead of human-readable ones
    """
    api_url: str = "http://localhost:3001/api"
    api_timeout: float = 10.0
    dataset_name: str = "gold-billing"
    export_dir: Path = REPO_ROOT / "exports"
    progress_reset_delay: float = 2.0
    drive_api_url: str = "https://www.googleapis.com/drive/v3"
    drive_upload_url: str = "https://www.googleapis.com/upload/drive/v3"
    drive_timeout: float = 60.0
    credential_dir: Path = REPO_ROOT / ".credentials"
    credential_encryption_key: Optional[str] = None
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level.upper()) if self.log_level else logging.INFO


def load_settings() -> Settings:
    """Build Settings from environment variables.

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    defaults = Settings()
    return Settings(
        api_url=os.getenv("LEDGER_API_URL", defaults.api_url).rstrip("/"),
        api_timeout=_env_float("LEDGER_API_TIMEOUT", defaults.api_timeout),
        dataset_name=os.getenv("LEDGER_DATASET_NAME", defaults.dataset_name),
        export_dir=Path(os.getenv("LEDGER_EXPORT_DIR", str(defaults.export_dir))),
        progress_reset_delay=_env_float("LEDGER_PROGRESS_RESET_DELAY", defaults.progress_reset_delay),
        drive_api_url=os.getenv("DRIVE_API_URL", defaults.drive_api_url).rstrip("/"),
        drive_upload_url=os.getenv("DRIVE_UPLOAD_URL", defaults.drive_upload_url).rstrip("/"),
        drive_timeout=_env_float("DRIVE_TIMEOUT", defaults.drive_timeout),
        credential_dir=Path(os.getenv("CREDENTIAL_DIR", str(defaults.credential_dir))),
        credential_encryption_key=os.getenv("CREDENTIAL_ENCRYPTION_KEY") or None,
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        log_json=_env_bool("LOG_JSON", defaults.log_json),
    )
