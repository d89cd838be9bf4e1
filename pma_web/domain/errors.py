from __future__ import annotations

from typing import Optional


class AuditError(Exception):
    """Base for every failure an audit can end with."""

    default_message = "An unexpected error occurred during the audit."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class ConfigurationFailure(AuditError):
    default_message = "API key not found. Set GEMINI_API_KEY or [gemini] api_key in the INI file."


class IOFailure(AuditError):
    """A local file could not be read or encoded."""

    def __init__(self, message: str = "", *, asset: str = ""):
        self.asset = asset
        super().__init__(message or f"Failed to process {asset or 'input'} file.")


class ServiceFailure(AuditError):
    default_message = "The Gemini request failed."

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SchemaFailure(AuditError):
    default_message = "Failed to parse the audit response from Gemini."


class ValidationFailure(AuditError):
    default_message = "Please provide at least one input (Video, Logs, or Blueprint) to run the audit."


class AuditBusy(AuditError):
    default_message = "An audit is already running. Wait for it to finish."
