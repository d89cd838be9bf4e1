########## ini_config.py

import os
import secrets
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

INI_DEFAULT_NAME = "ProactiveManufacturingAuditor.ini"

DEFAULT_MODEL = "gemini-3-pro-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(frozen=True)
class AppSettings:
    gemini_api_key: str
    gemini_model: str
    gemini_base_url: str
    gemini_timeout_seconds: float

    max_upload_mb: int

    flask_host: str
    flask_port: int
    flask_debug: bool
    flask_secret_key: str

    log_level: str

    max_sessions: int = 200
    session_idle_seconds: float = 3600.0

    @property
    def max_content_length(self) -> int:
        return self.max_upload_mb * 1024 * 1024


class IniConfig:
    """
    Adapter around ConfigParser and environment overrides.
    Keeps INI handling out of your app/service code.
    """

    def __init__(self, ini_path: Optional[Path], *, required: bool = True):
        self._ini_path = ini_path
        self._cfg = ConfigParser()
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig") if ini_path else []
        if not read_ok and required:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @staticmethod
    def from_env_or_default() -> "IniConfig":
        ini_raw = (os.getenv("APP_INI") or "").strip()
        if ini_raw:
            return IniConfig(Path(ini_raw))
        # No APP_INI: the repo-root INI is optional, defaults + env vars are enough
        return IniConfig(Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME, required=False)

    def _str(self, section: str, key: str, fallback: str) -> str:
        return (self._cfg.get(section, key, fallback=fallback) or "").strip() or fallback

    def load_settings(self) -> AppSettings:
        # Gemini: env var wins over INI so the key can stay out of the file
        api_key = (
            (os.getenv("GEMINI_API_KEY") or "").strip()
            or (os.getenv("API_KEY") or "").strip()
            or (self._cfg.get("gemini", "api_key", fallback="") or "").strip()
        )
        model = self._str("gemini", "model", DEFAULT_MODEL)
        base_url = self._str("gemini", "base_url", DEFAULT_BASE_URL)
        timeout_seconds = self._cfg.getfloat("gemini", "timeout_seconds", fallback=300.0)

        # Uploads
        max_upload_mb = self._cfg.getint("uploads", "max_upload_mb", fallback=512)

        # Sessions
        max_sessions = self._cfg.getint("sessions", "max_sessions", fallback=200)
        session_idle_seconds = self._cfg.getfloat("sessions", "idle_seconds", fallback=3600.0)

        # Flask
        flask_host = self._str("flask", "host", "127.0.0.1")
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=False)
        secret_key = (self._cfg.get("flask", "secret_key", fallback="") or "").strip() or secrets.token_hex(32)

        log_level = self._str("logging", "level", "INFO").upper()

        # Validate
        if timeout_seconds <= 0:
            raise ValueError(f"gemini.timeout_seconds must be positive, got {timeout_seconds}")
        if max_upload_mb <= 0:
            raise ValueError(f"uploads.max_upload_mb must be positive, got {max_upload_mb}")
        if max_sessions <= 0:
            raise ValueError(f"sessions.max_sessions must be positive, got {max_sessions}")
        if session_idle_seconds <= 0:
            raise ValueError(f"sessions.idle_seconds must be positive, got {session_idle_seconds}")

        return AppSettings(
            gemini_api_key=api_key,
            gemini_model=model,
            gemini_base_url=base_url,
            gemini_timeout_seconds=timeout_seconds,
            max_upload_mb=max_upload_mb,
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
            flask_secret_key=secret_key,
            log_level=log_level,
            max_sessions=max_sessions,
            session_idle_seconds=session_idle_seconds,
        )
