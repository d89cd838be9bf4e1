## routes.py
from __future__ import annotations

import uuid
from typing import Callable, Optional

import markdown
from flask import (
    Blueprint,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from markupsafe import Markup, escape
from werkzeug.exceptions import RequestEntityTooLarge

from pma_web.domain.errors import AuditBusy, ValidationFailure
from pma_web.domain.models import AuditStatus, MediaAsset
from pma_web.repositories.session_repository import SessionRepository
from pma_web.services.audit_orchestrator import AuditOrchestrator

RESULT_TABS = (
    ("anomaly", "Anomaly Detection", "anomaly_detection"),
    ("rootCause", "Root Cause Analysis", "root_cause_analysis"),
    ("fix", "Prescribed Fix", "prescribed_fix"),
)

VIDEO_ACCEPT = ".mp4,.mov,.webm"
BLUEPRINT_ACCEPT = ".png,.jpg,.jpeg,.webp"


def _session_id() -> str:
    sid = session.get("sid")
    if not sid:
        sid = uuid.uuid4().hex
        session["sid"] = sid
    return sid


def render_markdown(text: Optional[str]) -> Markup:
    """Renders the model's Markdown as HTML. Any HTML in the text itself is escaped first."""
    return Markup(markdown.markdown(str(escape(text or "")), extensions=["sane_lists", "nl2br"]))


def _form_applier(form, files) -> Callable[[AuditOrchestrator], None]:
    """Copies the posted fields into the session's inputs. A new upload replaces the kept file."""

    def apply(orch: AuditOrchestrator) -> None:
        orch.update_text(
            log_text=form.get("log_text", ""),
            diagnostic_goal=form.get("diagnostic_goal", ""),
        )

        for name, setter in (("video", orch.set_video), ("blueprint", orch.set_blueprint)):
            if form.get(f"remove_{name}"):
                setter(None)
            upload = files.get(name)
            if upload is not None and upload.filename:
                setter(MediaAsset.from_upload(upload))

    return apply


def _status_code(orch: AuditOrchestrator) -> int:
    return 502 if orch.status == AuditStatus.ERROR else 200


async def _run(orch: AuditOrchestrator, apply: Callable[[AuditOrchestrator], None]) -> int:
    """Returns the HTTP status matching how the submission ended."""
    try:
        await orch.submit(prepare=apply)
    except ValidationFailure:
        return 400
    except AuditBusy:
        return 409

    current_app.logger.info("Audit %s status=%s", orch.request_id, orch.status.value)
    return _status_code(orch)


def create_blueprint(sessions: SessionRepository) -> Blueprint:
    bp = Blueprint("web", __name__)
    bp.add_app_template_filter(render_markdown, "markdown")

    def existing_or_blank() -> AuditOrchestrator:
        # read-only views never add a session to the store
        orch = sessions.get(session.get("sid", ""))
        return orch if orch is not None else sessions.orchestrator_factory()

    def render_page(orch: AuditOrchestrator, *, error: Optional[str] = None):
        return render_template(
            "index.html",
            orch=orch,
            error=error or orch.error_message,
            tabs=RESULT_TABS,
            model=current_app.config.get("GEMINI_MODEL", ""),
            video_accept=VIDEO_ACCEPT,
            blueprint_accept=BLUEPRINT_ACCEPT,
        )

    @bp.get("/")
    def index():
        return render_page(existing_or_blank())

    @bp.post("/audit")
    async def run_audit():
        # parsing the body first refuses an oversized upload before a session is stored
        apply = _form_applier(request.form, request.files)
        orch = sessions.get_or_create(_session_id())
        code = await _run(orch, apply)
        if code == 409:
            return render_page(orch, error=AuditBusy().user_message), code
        return render_page(orch), code

    @bp.post("/reset")
    def reset():
        orch = sessions.get(session.get("sid", ""))
        if orch is None:
            return redirect(url_for("web.index"))
        try:
            orch.clear_inputs()
        except AuditBusy as e:
            return render_page(orch, error=e.user_message), 409
        return redirect(url_for("web.index"))

    @bp.get("/api/state")
    def api_state():
        orch = sessions.get(session.get("sid", ""))
        if orch is None:
            return jsonify({"status": AuditStatus.IDLE.value, "request_id": None, "error": None, "result": None})
        return jsonify(orch.snapshot())

    @bp.post("/api/audit")
    async def api_audit():
        apply = _form_applier(request.form, request.files)
        orch = sessions.get_or_create(_session_id())
        code = await _run(orch, apply)
        body = orch.snapshot()
        if code == 409:
            body["error"] = AuditBusy().user_message
        return jsonify(body), code

    @bp.get("/health")
    def health():
        return {"status": "healthy", "sessions": len(sessions)}

    @bp.app_errorhandler(RequestEntityTooLarge)
    def too_large(e):
        limit_mb = (current_app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        message = f"Upload too large. The limit is {limit_mb} MB per request."
        if request.path.startswith("/api/"):
            return jsonify({"status": "error", "error": message}), 413
        return render_page(existing_or_blank(), error=message), 413

    return bp
