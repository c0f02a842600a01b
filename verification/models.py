from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from config import SESSION_ID_LENGTH, DEFAULT_MIME_TYPE
from .errors import InvalidSessionId


def normalize_session_id(session_id: Optional[str]) -> str:
    """Trim a session id exactly once, the way every downstream call expects it."""
    return (session_id or "").strip()


def validate_session_id(session_id: Optional[str]) -> str:
    if session_id is None or len(session_id) != SESSION_ID_LENGTH:
        raise InvalidSessionId(session_id, SESSION_ID_LENGTH)
    return session_id


@dataclass(frozen=True)
class Credentials:
    client_key: str
    shared_secret: str = field(repr=False)

    @classmethod
    def from_settings(cls, settings) -> "Credentials":
        return cls(
            client_key=(settings.VERIFF_API_KEY or "").strip(),
            shared_secret=(settings.VERIFF_SHARED_SECRET or "").strip(),
        )

    def missing(self) -> List[str]:
        missing = []
        if not self.client_key:
            missing.append("VERIFF_API_KEY")
        if not self.shared_secret:
            missing.append("VERIFF_SHARED_SECRET")
        return missing

    @property
    def key_hint(self) -> str:
        """First characters of the client key, enough to tell integrations apart."""
        if len(self.client_key) <= 8:
            return "XXXX"
        return f"{self.client_key[:8]}XXXX"

    def __repr__(self):
        return f"Credentials(client_key={self.key_hint!r}, shared_secret='***')"


@dataclass(frozen=True)
class Session:
    id: str
    created_at: datetime
    url: Optional[str] = None

    @classmethod
    def mint(cls, raw_id: str, url: Optional[str] = None) -> "Session":
        return cls(
            id=normalize_session_id(raw_id),
            created_at=datetime.now(timezone.utc),
            url=url,
        )


class MediaContext(str, Enum):
    DOCUMENT_FRONT = "document-front"
    DOCUMENT_BACK = "document-back"
    FACE = "face"


@dataclass(frozen=True)
class MediaAsset:
    session_id: str
    context: Any
    content: bytes = field(repr=False)
    mime_type: str = DEFAULT_MIME_TYPE


@dataclass(frozen=True)
class MediaFile:
    """An uploaded image that has not been tied to a session yet."""

    context: MediaContext
    content: bytes = field(repr=False)
    mime_type: str = DEFAULT_MIME_TYPE
    filename: Optional[str] = None

    def bind(self, session: Session) -> MediaAsset:
        return MediaAsset(
            session_id=session.id,
            context=self.context,
            content=self.content,
            mime_type=self.mime_type or DEFAULT_MIME_TYPE,
        )


@dataclass(frozen=True)
class UploadAck:
    context: str
    status: str
    media_id: Optional[str] = None
    http_status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context,
            "status": self.status,
            "mediaId": self.media_id,
            "httpStatus": self.http_status,
        }


@dataclass(frozen=True)
class SubmitAck:
    status: str
    http_status: Optional[int] = None
    body: Optional[str] = None
    error: Optional[Exception] = None

    SUBMITTED = "submitted"
    FAILED = "submission_failed"

    @property
    def ok(self) -> bool:
        return self.status == self.SUBMITTED

    def to_dict(self) -> Dict[str, Any]:
        report = {"status": self.status, "httpStatus": self.http_status}
        if self.error is not None:
            report["error"] = self.error.to_dict()
        return report


@dataclass(frozen=True)
class RawDecisionResponse:
    session_id: str
    http_status: int
    body: Optional[Dict[str, Any]] = None
    text: str = ""
    not_ready: bool = False
    full_auto: bool = False


class DecisionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    RESUBMISSION_REQUESTED = "resubmission_requested"
    ERROR = "error"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    DecisionStatus.APPROVED,
    DecisionStatus.DECLINED,
    DecisionStatus.RESUBMISSION_REQUESTED,
})


class ResponseShape(str, Enum):
    NOT_READY = "not_ready"
    ENVELOPED = "enveloped"
    FLAT = "flat"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class DecisionEnvelope:
    status: DecisionStatus
    raw_body: Optional[Dict[str, Any]] = None
    shape: ResponseShape = ResponseShape.UNRECOGNIZED
    session_id: Optional[str] = None
    code: Optional[int] = None
    reason: Optional[str] = None
    reason_code: Optional[int] = None
    document: Optional[Dict[str, Any]] = None
    person: Optional[Dict[str, Any]] = None
    risk_labels: Optional[List[Any]] = None
    decision_time: Optional[str] = None
    acceptance_time: Optional[str] = None
    decision_score: Optional[float] = None
    insights: Optional[List[Any]] = None
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "sessionId": self.session_id,
            "code": self.code,
            "reason": self.reason,
            "reasonCode": self.reason_code,
            "document": self.document,
            "person": self.person,
            "riskLabels": self.risk_labels or [],
            "decisionTime": self.decision_time,
            "acceptanceTime": self.acceptance_time,
            "decisionScore": self.decision_score,
            "insights": self.insights or [],
            "message": self.message,
        }


class PollState(str, Enum):
    POLLING = "polling"
    TERMINAL = "terminal"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass(frozen=True)
class PollOutcome:
    state: PollState
    attempts_used: int
    terminal_decision: Optional[DecisionEnvelope] = None
    last_decision: Optional[DecisionEnvelope] = None
    error: Optional[Exception] = None

    @property
    def exhausted(self) -> bool:
        return self.state is PollState.EXHAUSTED


@dataclass(frozen=True)
class VerificationRequest:
    document_front: Optional[MediaFile]
    document_back: Optional[MediaFile]
    face: Optional[MediaFile]
    first_name: Optional[str]
    last_name: Optional[str]

    def media(self) -> List[MediaFile]:
        return [self.document_front, self.document_back, self.face]

    @property
    def person(self) -> Dict[str, str]:
        return {"firstName": self.first_name.strip(), "lastName": self.last_name.strip()}


@dataclass
class VerificationResult:
    status: str
    session_id: str
    status_check_handle: str
    decision: Optional[DecisionEnvelope] = None
    report: Optional[Dict[str, Any]] = None
    uploads: List[UploadAck] = field(default_factory=list)
    submission: Optional[SubmitAck] = None
    attempts_used: int = 0

    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "sessionId": self.session_id,
            "decision": self.decision.status.value if self.decision else None,
            "data": self.report,
            "statusCheckHandle": self.status_check_handle,
            "uploads": [ack.to_dict() for ack in self.uploads],
            "submission": self.submission.to_dict() if self.submission else None,
            "attemptsUsed": self.attempts_used,
        }
