import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from config import REQUIRED_INPUT_FIELDS
from .client import SessionClient
from .errors import PreconditionFailed, UploadFailed
from .models import (
    Credentials,
    DecisionEnvelope,
    PollState,
    Session,
    UploadAck,
    VerificationRequest,
    VerificationResult,
    normalize_session_id,
    validate_session_id,
)
from .normalizer import normalize
from .observability import log_event
from .poller import PollLoop
from .report import DecisionReport

logger = logging.getLogger(__name__)


class VerificationOrchestrator:
    """
    Runs one verification end to end:
    create session -> upload media concurrently -> submit -> poll for decision
    """

    def __init__(self,
                 credentials: Credentials,
                 client: SessionClient,
                 poll_loop: PollLoop,
                 report: Optional[DecisionReport] = None,
                 upload_workers: int = 3,
                 status_check_path: str = "/veriff/status"):
        self.credentials = credentials
        self.client = client
        self.poll_loop = poll_loop
        self.report = report or DecisionReport()
        self.upload_workers = upload_workers
        self.status_check_path = status_check_path

    def status_check_handle(self, session_id: str) -> str:
        return f"{self.status_check_path}?sessionId={session_id}"

    # ------------------------
    # Preconditions
    # ------------------------
    def _check_credentials(self) -> List[str]:
        return self.credentials.missing()

    def _check_inputs(self, request: VerificationRequest) -> List[str]:
        missing = []
        for name in REQUIRED_INPUT_FIELDS:
            value = getattr(request, name, None)
            if isinstance(value, str):
                value = value.strip()
            elif value is not None and hasattr(value, "content"):
                value = value.content
            if not value:
                missing.append(name)
        return missing

    # ------------------------
    # Upload fan-out / fan-in
    # ------------------------
    def _upload_all(self, session: Session, request: VerificationRequest) -> List[UploadAck]:
        assets = [media.bind(session) for media in request.media()]
        acks: List[UploadAck] = []
        failures: List[UploadFailed] = []

        # Never fewer workers than assets: the uploads must run side by side
        with ThreadPoolExecutor(max_workers=max(self.upload_workers, len(assets)),
                                thread_name_prefix="veriff-upload") as executor:
            futures = [
                executor.submit(self.client.upload_media, session.id, asset)
                for asset in assets
            ]
            # Every upload is awaited, even after a failure, so the report is complete
            for future in futures:
                try:
                    acks.append(future.result())
                except UploadFailed as e:
                    failures.append(e)

        if failures:
            contexts = [f.context for f in failures]
            log_event(logger, logging.ERROR, "orchestrator.upload_failed",
                      session_id=session.id, contexts=",".join(contexts),
                      succeeded=len(acks))
            raise UploadFailed(contexts, session_id=session.id, failures=failures, acks=acks)

        return acks

    # ------------------------
    # Public operations
    # ------------------------
    def submit(self, request: VerificationRequest) -> VerificationResult:
        # Step 1: Validate configuration and inputs before any network call
        missing = self._check_credentials() + self._check_inputs(request)
        if missing:
            raise PreconditionFailed(missing)

        # Step 2: Create the provider session
        session = self.client.create_session(person=request.person)

        # Step 3: The trimmed id is the only id used from here on
        session_id = validate_session_id(session.id)
        log_event(logger, logging.INFO, "orchestrator.session_ready", session_id=session_id)

        # Step 4: Upload all three assets concurrently
        uploads = self._upload_all(session, request)

        # Step 5: Submit (best-effort)
        submission = self.client.submit_session(session_id)
        if not submission.ok:
            log_event(logger, logging.WARNING, "orchestrator.submit_failed",
                      session_id=session_id, http_status=submission.http_status,
                      body=submission.body)

        # Step 6: Resolve the decision
        result = VerificationResult(
            status=VerificationResult.PROCESSING,
            session_id=session_id,
            status_check_handle=self.status_check_handle(session_id),
            uploads=uploads,
            submission=submission,
        )

        if self.poll_loop.max_attempts == 0:
            result.status = VerificationResult.SUBMITTED
            return result

        outcome = self.poll_loop.run(session_id)
        result.attempts_used = outcome.attempts_used

        if outcome.state is PollState.TERMINAL:
            result.status = VerificationResult.COMPLETED
            result.decision = outcome.terminal_decision
            result.report = self.report.build(outcome.terminal_decision)
            log_event(logger, logging.INFO, "orchestrator.completed",
                      session_id=session_id, decision=outcome.terminal_decision.status.value,
                      attempts=outcome.attempts_used)
            return result

        if outcome.state is PollState.EXHAUSTED:
            result.decision = outcome.last_decision
            log_event(logger, logging.INFO, "orchestrator.still_processing",
                      session_id=session_id, attempts=outcome.attempts_used)
            return result

        raise outcome.error

    def check_status(self, session_id: str) -> DecisionEnvelope:
        """Single out-of-band decision lookup for a previously created session."""
        missing = self._check_credentials()
        if missing:
            raise PreconditionFailed(missing)
        session_id = validate_session_id(normalize_session_id(session_id))
        decision = normalize(self.client.fetch_decision(session_id))
        log_event(logger, logging.INFO, "orchestrator.status_checked",
                  session_id=session_id, decision=decision.status.value)
        return decision


def build_orchestrator(settings,
                       http=None,
                       sleep: Callable[[float], None] = time.sleep) -> VerificationOrchestrator:
    """Wire the orchestrator and its collaborators from application settings."""
    credentials = Credentials.from_settings(settings)
    client = SessionClient.from_settings(settings, credentials, http=http)
    return VerificationOrchestrator(
        credentials=credentials,
        client=client,
        poll_loop=PollLoop.from_settings(settings, client, sleep=sleep),
        report=DecisionReport(mask_pii=settings.MASK_PII),
        upload_workers=settings.UPLOAD_WORKERS,
        status_check_path=settings.STATUS_CHECK_PATH,
    )
