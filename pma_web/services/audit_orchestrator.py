from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Callable, Optional

from pma_web.domain.errors import AuditBusy, AuditError, ValidationFailure
from pma_web.domain.models import AuditRequest, AuditResult, AuditStatus, MediaAsset

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred during the audit."
CANCELLED_ERROR = "Audit cancelled."


def new_request_id() -> str:
    return uuid.uuid4().hex[:9].upper()


class AuditOrchestrator:
    """
    Holds one user's audit inputs and the lifecycle of their request.

    idle/success/error --submit--> analyzing --> success | error

    At most one request is in flight; submitting while analyzing raises AuditBusy.
    A submission with no video, logs or blueprint sets the error message and
    raises ValidationFailure, leaving the status where it was.
    """

    def __init__(self, client):
        self._client = client
        self._lock = threading.Lock()

        self.video: Optional[MediaAsset] = None
        self.blueprint: Optional[MediaAsset] = None
        self.log_text: str = ""
        self.diagnostic_goal: str = ""

        self._status = AuditStatus.IDLE
        self._result: Optional[AuditResult] = None
        self._error_message: Optional[str] = None
        self._request_id: Optional[str] = None

    @property
    def status(self) -> AuditStatus:
        return self._status

    @property
    def result(self) -> Optional[AuditResult]:
        return self._result

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def request_id(self) -> Optional[str]:
        return self._request_id

    @property
    def can_submit(self) -> bool:
        return self._status != AuditStatus.ANALYZING

    # -----------------------------
    # Inputs
    # -----------------------------
    def set_video(self, asset: Optional[MediaAsset]) -> None:
        self.video = asset

    def set_blueprint(self, asset: Optional[MediaAsset]) -> None:
        self.blueprint = asset

    def update_text(self, log_text: Optional[str] = None, diagnostic_goal: Optional[str] = None) -> None:
        if log_text is not None:
            self.log_text = log_text
        if diagnostic_goal is not None:
            self.diagnostic_goal = diagnostic_goal

    def clear_inputs(self) -> None:
        with self._lock:
            if self._status == AuditStatus.ANALYZING:
                raise AuditBusy()
            self.video = None
            self.blueprint = None
            self.log_text = ""
            self.diagnostic_goal = ""
            self._status = AuditStatus.IDLE
            self._result = None
            self._error_message = None
            self._request_id = None

    def current_request(self) -> AuditRequest:
        return AuditRequest(
            video=self.video,
            log_text=self.log_text,
            blueprint=self.blueprint,
            diagnostic_goal=self.diagnostic_goal,
        )

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def _begin(self, prepare: Optional[Callable[[AuditOrchestrator], None]]) -> AuditRequest:
        with self._lock:
            if self._status == AuditStatus.ANALYZING:
                raise AuditBusy()
            if prepare is not None:
                prepare(self)
            request = self.current_request()
            if not request.has_input():
                failure = ValidationFailure()
                self._error_message = failure.user_message
                raise failure
            self._status = AuditStatus.ANALYZING
            self._error_message = None
            self._request_id = new_request_id()
            return request

    def _succeed(self, result: AuditResult) -> None:
        self._result = result
        self._error_message = None
        self._status = AuditStatus.SUCCESS

    def _fail(self, message: str) -> None:
        self._result = None
        self._error_message = message
        self._status = AuditStatus.ERROR

    async def submit(self, prepare: Optional[Callable[[AuditOrchestrator], None]] = None) -> AuditStatus:
        """
        Runs one audit with the current inputs and returns the final status.

        prepare, when given, is called with this orchestrator after the busy check
        and before the inputs are read, under the same lock. A busy rejection
        therefore never touches the kept inputs.

        Raises AuditBusy or ValidationFailure without touching the status when
        the submission is rejected; every other failure ends in ERROR.
        """
        request = self._begin(prepare)

        logger.info("Audit %s started (video=%s, blueprint=%s, log_chars=%d)",
                    self._request_id, bool(request.video), bool(request.blueprint), len(request.log_text))
        try:
            result = await self._client.submit(
                request.video,
                request.log_text,
                request.blueprint,
                request.diagnostic_goal,
            )
        except AuditError as e:
            logger.warning("Audit %s failed: %s: %s", self._request_id, type(e).__name__, e)
            self._fail(e.user_message)
        except asyncio.CancelledError:
            logger.info("Audit %s cancelled", self._request_id)
            self._fail(CANCELLED_ERROR)
            raise
        except Exception:
            logger.exception("Audit %s failed unexpectedly", self._request_id)
            self._fail(UNEXPECTED_ERROR)
        else:
            logger.info("Audit %s succeeded", self._request_id)
            self._succeed(result)

        return self._status

    def snapshot(self) -> dict:
        return {
            "status": self._status.value,
            "request_id": self._request_id,
            "error": self._error_message,
            "result": self._result.as_dict() if self._result else None,
            "inputs": {
                "video": self.video.filename if self.video else None,
                "blueprint": self.blueprint.filename if self.blueprint else None,
                "log_text": self.log_text,
                "diagnostic_goal": self.diagnostic_goal,
            },
        }
