from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("MDBR_DB_PATH", "mdbr.db")
    namespace: str = os.getenv("MDBR_NAMESPACE", "")  # empty = all namespaces
    workers: int = _env_int("MDBR_WORKERS", 2)
    resync_interval_s: int = _env_int("MDBR_RESYNC_INTERVAL_S", 30)

    # Requeue backoff after a failed pass
    backoff_base_s: float = _env_float("MDBR_BACKOFF_BASE_S", 1.0)
    backoff_max_s: float = _env_float("MDBR_BACKOFF_MAX_S", 300.0)

    # Kubernetes API access (credentials come from the service account or kubeconfig)
    request_timeout_s: float = _env_float("MDBR_REQUEST_TIMEOUT_S", 10.0)

    # Email alerting (optional)
    enable_email: bool = _env_bool("MDBR_ENABLE_EMAIL", False)
    fail_alert_threshold: int = _env_int("MDBR_FAIL_ALERT_THRESHOLD", 5)
    smtp_host: str = os.getenv("MDBR_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("MDBR_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("MDBR_SMTP_USER")
    smtp_password: str | None = os.getenv("MDBR_SMTP_PASSWORD")
    email_from: str | None = os.getenv("MDBR_EMAIL_FROM")
    email_to: str | None = os.getenv("MDBR_EMAIL_TO")


settings = Settings()
