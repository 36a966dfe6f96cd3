from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

DOCUMENT_EXTENSION = ".psd"
ARCHIVE_EXTENSION = ".zip"
ALLOWED_EXTENSIONS = {DOCUMENT_EXTENSION, ARCHIVE_EXTENSION}

DEFAULT_MAX_UPLOAD_MB = 500
DEFAULT_MAX_FILES = 100
DEFAULT_DECODE_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_WORKERS = 4
DEFAULT_PASS_THRESHOLD = 70
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
DEFAULT_CRITERIA_PATH = Path(__file__).resolve().parent.parent / "data" / "default_criteria.json"

logger = logging.getLogger(__name__)


@dataclass
class GraderSettings:
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_MB * 1024 * 1024
    max_files: int = DEFAULT_MAX_FILES
    decode_timeout_seconds: float = DEFAULT_DECODE_TIMEOUT_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    pass_threshold: int = DEFAULT_PASS_THRESHOLD
    log_level: str = "INFO"
    cors_allowed_origins: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
    return value if value >= minimum else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
    return value if value > 0 else default


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_settings() -> GraderSettings:
    return GraderSettings(
        max_upload_bytes=_env_int("GRADER_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB) * 1024 * 1024,
        max_files=_env_int("GRADER_MAX_FILES", DEFAULT_MAX_FILES),
        decode_timeout_seconds=_env_float("GRADER_DECODE_TIMEOUT_SECONDS", DEFAULT_DECODE_TIMEOUT_SECONDS),
        max_workers=_env_int("GRADER_MAX_WORKERS", DEFAULT_MAX_WORKERS),
        pass_threshold=_env_int("GRADER_PASS_THRESHOLD", DEFAULT_PASS_THRESHOLD, minimum=0),
        log_level=(os.getenv("GRADER_LOG_LEVEL") or "INFO").strip().upper(),
        cors_allowed_origins=_split_origins(os.getenv("GRADER_CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS)),
    )


def configure_logging(level: str | None = None) -> None:
    selected = (level or load_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, selected, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_default_criteria_payload(path: str | None = None) -> tuple[dict, str]:
    """Return the raw default criteria payload and where it came from.

    A missing or unreadable file is not an error; the caller then gets an empty
    payload, which validates to a criteria set with every rule group disabled.
    """

    configured_path = path or os.getenv("GRADER_DEFAULT_CRITERIA_PATH", DEFAULT_CRITERIA_PATH)
    file_path = Path(configured_path)

    if file_path.exists():
        try:
            raw = json.loads(file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Default criteria file %s is unreadable: %s", file_path, exc)
            return {}, "default"

        if isinstance(raw, dict):
            return raw, str(file_path)
        logger.warning("Default criteria file %s does not hold a JSON object", file_path)
    else:
        logger.warning("Default criteria file %s not found; every rule group is disabled", file_path)

    return {}, "default"
