from typing import Any, Dict, List, Optional

# Provider bodies are echoed into reports; keep them short
BODY_REPORT_LIMIT = 500


def _truncate(body: Optional[str], limit: int = BODY_REPORT_LIMIT) -> Optional[str]:
    if body is None:
        return None
    if len(body) <= limit:
        return body
    return body[:limit] + "...(truncated)"


class VerificationError(Exception):
    """
    Base class for every failure raised by the verification core.

    ``transient`` tells the poll loop whether another attempt may succeed.
    ``to_dict`` is what callers see; it never carries credentials.
    """

    code = "verification_error"
    transient = False

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.session_id = session_id

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        report = {"code": self.code, "message": self.message}
        if self.session_id:
            report["session_id"] = self.session_id
        report.update(self.details())
        return report


class PreconditionFailed(VerificationError):
    """Missing configuration or input; nothing was sent to the provider."""

    code = "precondition_failed"

    def __init__(self, missing: List[str], message: Optional[str] = None):
        self.missing = list(missing)
        super().__init__(message or f"Missing required fields: {', '.join(self.missing)}")

    def details(self):
        return {"missing": self.missing}


class ProviderHTTPError(VerificationError):
    """A provider call answered with an unexpected status or not at all."""

    def __init__(self, message: str, http_status: Optional[int] = None,
                 body: Optional[str] = None, session_id: Optional[str] = None):
        super().__init__(message, session_id=session_id)
        self.http_status = http_status
        self.body = body

    def details(self):
        return {"http_status": self.http_status, "body": _truncate(self.body)}


class SessionCreateFailed(ProviderHTTPError):
    code = "session_create_failed"


class SubmitFailed(ProviderHTTPError):
    """Recorded on the submit acknowledgement; never raised out of the flow."""

    code = "submit_failed"


class DecisionFetchFailed(ProviderHTTPError):
    code = "decision_fetch_failed"
    transient = True


class AuthMismatch(ProviderHTTPError):
    """
    401 on a signed call. Almost always a wrong key pair or a signature over
    different bytes than were sent, so retrying does not help.
    """

    code = "auth_mismatch"

    def __init__(self, message: str, client_key_hint: str, payload_length: int,
                 http_status: Optional[int] = 401, body: Optional[str] = None,
                 session_id: Optional[str] = None):
        super().__init__(message, http_status=http_status, body=body, session_id=session_id)
        self.client_key_hint = client_key_hint
        self.payload_length = payload_length

    def details(self):
        report = super().details()
        report.update({
            "client_key": self.client_key_hint,
            "signed_payload_length": self.payload_length,
        })
        return report


class MalformedResponse(VerificationError):
    code = "malformed_response"

    def __init__(self, message: str, body: Optional[str] = None,
                 http_status: Optional[int] = None, session_id: Optional[str] = None):
        super().__init__(message, session_id=session_id)
        self.body = body
        self.http_status = http_status

    def details(self):
        return {"http_status": self.http_status, "body": _truncate(self.body)}


class InvalidSessionId(VerificationError):
    code = "invalid_session_id"

    def __init__(self, session_id: Optional[str], expected_length: int):
        self.value = session_id
        length = len(session_id) if session_id is not None else 0
        super().__init__(
            f"Invalid session ID: expected {expected_length} characters, got {length}"
        )
        self.length = length

    def details(self):
        return {"value": self.value, "length": self.length}


class UploadFailed(VerificationError):
    """
    One or more media uploads were rejected.

    Raised by the client for a single context, and by the orchestrator once all
    three uploads have finished, naming every context that failed.
    """

    code = "upload_failed"

    def __init__(self, contexts: List[str], http_status: Optional[int] = None,
                 body: Optional[str] = None, session_id: Optional[str] = None,
                 failures: Optional[List["UploadFailed"]] = None,
                 acks: Optional[list] = None):
        self.contexts = list(contexts)
        self.http_status = http_status
        self.body = body
        self.failures = failures or []
        self.acks = acks or []
        super().__init__(f"Upload failed for: {', '.join(self.contexts)}", session_id=session_id)

    @property
    def context(self) -> Optional[str]:
        return self.contexts[0] if self.contexts else None

    def details(self):
        if self.failures:
            return {
                "contexts": self.contexts,
                "failures": [
                    {"context": f.context, "http_status": f.http_status, "body": _truncate(f.body)}
                    for f in self.failures
                ],
                "uploads": [ack.to_dict() for ack in self.acks],
            }
        return {"contexts": self.contexts, "http_status": self.http_status, "body": _truncate(self.body)}
