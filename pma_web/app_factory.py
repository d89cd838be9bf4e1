from __future__ import annotations

import logging
from typing import Optional

import httpx
from flask import Flask

from pma_web.config.ini_config import AppSettings, IniConfig
from pma_web.repositories.session_repository import SessionRepository
from pma_web.services.audit_client import AuditClient
from pma_web.services.audit_orchestrator import AuditOrchestrator
from pma_web.web.routes import create_blueprint


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Flask:
    if settings is None:
        settings = IniConfig.from_env_or_default().load_settings()

    configure_logging(settings.log_level)

    audit_client = AuditClient.from_settings(settings, transport=transport)
    sessions = SessionRepository(
        orchestrator_factory=lambda: AuditOrchestrator(audit_client),
        max_sessions=settings.max_sessions,
        idle_seconds=settings.session_idle_seconds,
    )

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(sessions))

    app.config["SECRET_KEY"] = settings.flask_secret_key
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug
    app.config["GEMINI_MODEL"] = settings.gemini_model

    if not settings.gemini_api_key:
        # not fatal at startup: every audit surfaces it as a configuration error
        app.logger.warning("No Gemini API key configured; audits will fail until one is set.")

    return app

# Composition root
# •	create_app() loads AppSettings once and injects them; nothing below reads os.environ.
# •	AuditClient is shared; each browser session gets its own AuditOrchestrator.
# •	Request flow:
#    POST /audit -> routes -> AuditOrchestrator.submit -> AuditClient.submit
#      -> encode_asset (video, blueprint) -> build_prompt -> Gemini generateContent
#    The orchestrator turns the outcome into SUCCESS or ERROR; the template renders it.
