import logging
from typing import Any, Dict, Optional

import requests

from config import MEDIA_CONTEXT_MAP
from .errors import (
    AuthMismatch,
    DecisionFetchFailed,
    MalformedResponse,
    PreconditionFailed,
    SessionCreateFailed,
    SubmitFailed,
    UploadFailed,
)
from .models import (
    Credentials,
    MediaAsset,
    MediaContext,
    RawDecisionResponse,
    Session,
    SubmitAck,
    UploadAck,
    validate_session_id,
)
from .observability import log_event
from .signer import sign
from .utils import encode_data_uri, is_https_url, parse_json, serialize_body

logger = logging.getLogger(__name__)


def map_context(context: Any) -> str:
    """Translate an internal context name into Veriff's media vocabulary"""
    if isinstance(context, MediaContext):
        return context.value
    key = str(context)
    return MEDIA_CONTEXT_MAP.get(key, key.lower())


class SessionClient:
    """
    Issues the four Veriff session calls.

    Every request body is serialized exactly once; the same string is signed
    and transmitted, so the signature always covers the bytes on the wire.
    """

    def __init__(self,
                 credentials: Credentials,
                 base_url: str,
                 callback_url: str,
                 timeout: float = 30.0,
                 http: Optional[requests.Session] = None,
                 full_auto: bool = False,
                 full_auto_version: str = "1.0.0"):
        if not is_https_url(callback_url):
            raise PreconditionFailed(
                ["VERIFF_CALLBACK_URL"], "Callback URL must be an absolute HTTPS URL"
            )
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.callback_url = callback_url
        self.timeout = timeout
        self.http = http or requests.Session()
        self.full_auto = full_auto
        self.full_auto_version = full_auto_version

    @classmethod
    def from_settings(cls, settings, credentials: Credentials,
                      http: Optional[requests.Session] = None) -> "SessionClient":
        return cls(
            credentials=credentials,
            base_url=settings.VERIFF_BASE_URL,
            callback_url=settings.VERIFF_CALLBACK_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            http=http,
            full_auto=settings.VERIFF_FULL_AUTO,
            full_auto_version=settings.VERIFF_FULL_AUTO_VERSION,
        )

    # ------------------------
    # Transport
    # ------------------------
    def _headers(self, signature: Optional[str] = None, has_body: bool = True) -> Dict[str, str]:
        headers = {"X-AUTH-CLIENT": self.credentials.client_key}
        if has_body:
            headers["Content-Type"] = "application/json"
        if signature is not None:
            headers["X-HMAC-SIGNATURE"] = signature
        return headers

    def _send(self, method: str, path: str, body: Optional[str] = None,
              signature: Optional[str] = None,
              params: Optional[Dict[str, str]] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        log_event(logger, logging.DEBUG, "veriff.request",
                  method=method, url=url, body_length=len(body) if body else 0,
                  signature=signature)
        response = self.http.request(
            method,
            url,
            data=body.encode("utf-8") if body is not None else None,
            headers=self._headers(signature, has_body=body is not None),
            params=params,
            timeout=self.timeout,
        )
        log_event(logger, logging.DEBUG, "veriff.response",
                  method=method, url=url, http_status=response.status_code,
                  body=response.text)
        return response

    def close(self) -> None:
        self.http.close()

    @staticmethod
    def _ok(response: requests.Response) -> bool:
        return 200 <= response.status_code < 300

    # ------------------------
    # Session creation
    # ------------------------
    def create_session(self, person: Optional[Dict[str, str]] = None) -> Session:
        verification: Dict[str, Any] = {"callback": self.callback_url}
        if person:
            verification["person"] = {
                "firstName": person.get("firstName"),
                "lastName": person.get("lastName"),
            }
        body = serialize_body({"verification": verification})

        try:
            response = self._send("POST", "/sessions", body=body)
        except requests.RequestException as e:
            raise SessionCreateFailed(f"Session creation failed: {e}") from e

        if not self._ok(response):
            raise SessionCreateFailed(
                f"Session creation failed: {response.status_code}",
                http_status=response.status_code,
                body=response.text,
            )

        data = parse_json(response.text)
        if not isinstance(data, dict):
            raise MalformedResponse(
                "Invalid JSON response from session creation",
                body=response.text, http_status=response.status_code,
            )

        verification_data = data.get("verification") or {}
        raw_id = verification_data.get("id") if isinstance(verification_data, dict) else None
        if not raw_id or not isinstance(raw_id, str):
            raise MalformedResponse(
                "Session creation response has no verification id",
                body=response.text, http_status=response.status_code,
            )

        session = Session.mint(raw_id, url=verification_data.get("url"))
        log_event(logger, logging.INFO, "veriff.session_created",
                  session_id=session.id, session_id_length=len(session.id))
        return session

    # ------------------------
    # Media upload
    # ------------------------
    def upload_media(self, session_id: str, asset: MediaAsset) -> UploadAck:
        if asset.session_id != session_id:
            raise PreconditionFailed(
                ["session_id"],
                f"Asset bound to session {asset.session_id!r} uploaded under {session_id!r}",
            )

        context = map_context(asset.context)
        body = serialize_body({
            "image": {
                "context": context,
                "content": encode_data_uri(asset.content, asset.mime_type),
            }
        })
        signature = sign(body, self.credentials.shared_secret)

        log_event(logger, logging.INFO, "veriff.upload_started",
                  session_id=session_id, context=context,
                  image_bytes=len(asset.content), body_length=len(body))

        try:
            response = self._send("POST", f"/sessions/{session_id}/media",
                                  body=body, signature=signature)
        except requests.RequestException as e:
            raise UploadFailed([context], body=str(e), session_id=session_id) from e

        if not self._ok(response):
            raise UploadFailed([context], http_status=response.status_code,
                               body=response.text, session_id=session_id)

        data = parse_json(response.text)
        if not isinstance(data, dict) or data.get("status") != "success":
            raise UploadFailed([context], http_status=response.status_code,
                               body=response.text, session_id=session_id)

        image = data.get("image") or {}
        ack = UploadAck(
            context=context,
            status=data["status"],
            media_id=image.get("id") if isinstance(image, dict) else None,
            http_status=response.status_code,
        )
        log_event(logger, logging.INFO, "veriff.upload_succeeded",
                  session_id=session_id, context=context, media_id=ack.media_id)
        return ack

    # ------------------------
    # Submission
    # ------------------------
    def submit_session(self, session_id: str) -> SubmitAck:
        """Best-effort PATCH to mark the session submitted. Never raises."""
        body = serialize_body({"verification": {"status": "submitted"}})
        signature = sign(body, self.credentials.shared_secret)

        try:
            response = self._send("PATCH", f"/sessions/{session_id}",
                                  body=body, signature=signature)
        except requests.RequestException as e:
            error = SubmitFailed(f"Session submit failed: {e}", session_id=session_id)
            return SubmitAck(status=SubmitAck.FAILED, body=str(e), error=error)

        if not self._ok(response):
            error = SubmitFailed(
                f"Session submit failed: {response.status_code}",
                http_status=response.status_code, body=response.text,
                session_id=session_id,
            )
            return SubmitAck(status=SubmitAck.FAILED, http_status=response.status_code,
                             body=response.text, error=error)

        return SubmitAck(status=SubmitAck.SUBMITTED, http_status=response.status_code,
                         body=response.text)

    # ------------------------
    # Decision lookup
    # ------------------------
    def decision_path(self, session_id: str) -> str:
        if self.full_auto:
            return f"/sessions/{session_id}/decision/fullauto"
        return f"/sessions/{session_id}/decision"

    def fetch_decision(self, session_id: str) -> RawDecisionResponse:
        validate_session_id(session_id)

        # The decision GET has no body: the signed payload is the session id
        signature = sign(session_id, self.credentials.shared_secret)
        params = {"version": self.full_auto_version} if self.full_auto else None

        try:
            response = self._send("GET", self.decision_path(session_id),
                                  signature=signature, params=params)
        except requests.Timeout as e:
            raise DecisionFetchFailed(f"Decision fetch timed out: {e}",
                                      session_id=session_id) from e
        except requests.RequestException as e:
            raise DecisionFetchFailed(f"Decision fetch failed: {e}",
                                      session_id=session_id) from e

        if response.status_code == 404:
            log_event(logger, logging.DEBUG, "veriff.decision_not_ready", session_id=session_id)
            return RawDecisionResponse(
                session_id=session_id,
                http_status=404,
                text=response.text,
                not_ready=True,
                full_auto=self.full_auto,
            )

        if response.status_code == 401:
            log_event(logger, logging.ERROR, "veriff.auth_mismatch",
                      session_id=session_id, client_key=self.credentials.key_hint,
                      signed_payload_length=len(session_id), full_auto=self.full_auto)
            raise AuthMismatch(
                "Decision fetch rejected the request signature; check that the API key "
                "and shared secret belong to the same integration",
                client_key_hint=self.credentials.key_hint,
                payload_length=len(session_id),
                body=response.text,
                session_id=session_id,
            )

        if not self._ok(response):
            raise DecisionFetchFailed(
                f"Decision fetch failed: {response.status_code}",
                http_status=response.status_code, body=response.text,
                session_id=session_id,
            )

        data = parse_json(response.text)
        if not isinstance(data, dict):
            raise MalformedResponse(
                "Invalid JSON response from decision fetch",
                body=response.text, http_status=response.status_code,
                session_id=session_id,
            )

        return RawDecisionResponse(
            session_id=session_id,
            http_status=response.status_code,
            body=data,
            text=response.text,
            full_auto=self.full_auto,
        )
