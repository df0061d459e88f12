import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:3001/api"
JOB_TIMEOUT_MIN = 180
JOB_TIMEOUT_MAX = 300


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    api_token: Optional[str] = None
    request_timeout: float = 10.0
    poll_interval: float = 2.0
    job_timeout: float = 300.0
    refresh_interval: float = 60.0
    export_dir: Path = Path("data/exports")
    log_level: str = "INFO"


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``CASECHAT_*`` variables.

    With no ``env`` the process environment is used, after loading ``.env``.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    job_timeout = _number(env, "CASECHAT_JOB_TIMEOUT", 300.0)
    if not JOB_TIMEOUT_MIN <= job_timeout <= JOB_TIMEOUT_MAX:
        raise ValueError(
            f"CASECHAT_JOB_TIMEOUT must be between {JOB_TIMEOUT_MIN} and {JOB_TIMEOUT_MAX} seconds, got {job_timeout}"
        )

    token = (env.get("CASECHAT_API_TOKEN") or "").strip() or None
    return Settings(
        api_url=(env.get("CASECHAT_API_URL") or DEFAULT_API_URL).rstrip("/"),
        api_token=token,
        request_timeout=_number(env, "CASECHAT_REQUEST_TIMEOUT", 10.0),
        poll_interval=_number(env, "CASECHAT_POLL_INTERVAL", 2.0),
        job_timeout=job_timeout,
        refresh_interval=_number(env, "CASECHAT_REFRESH_INTERVAL", 60.0),
        export_dir=Path(env.get("CASECHAT_EXPORT_DIR") or "data/exports"),
        log_level=(env.get("CASECHAT_LOG_LEVEL") or "INFO").upper(),
    )
