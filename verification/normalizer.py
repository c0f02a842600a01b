"""
Maps Veriff decision responses onto a single DecisionEnvelope.

Veriff answers the decision lookup in more than one shape:

- enveloped: ``{"status": "success", "verification": null | {...}}``
- flat (Full Auto and faster paths): ``{"decision": "approved", ...}`` or
  ``{"status": "approved", ...}``

The shape is detected once, right after parsing, and each shape has its own
reader. Nothing downstream probes optional fields.
"""
from typing import Any, Dict, Optional

from .models import (
    DecisionEnvelope,
    DecisionStatus,
    RawDecisionResponse,
    ResponseShape,
    TERMINAL_STATUSES,
)

TERMINAL_VALUES = {s.value for s in TERMINAL_STATUSES}
PENDING_VALUES = {"pending"}
ERROR_VALUES = {"fail", "error"}


def _status_value(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip().lower()
    return None


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def detect_shape(raw: RawDecisionResponse) -> ResponseShape:
    if raw.not_ready:
        return ResponseShape.NOT_READY
    return detect_payload_shape(raw.body)


def detect_payload_shape(body: Optional[Dict[str, Any]]) -> ResponseShape:
    if not isinstance(body, dict):
        return ResponseShape.UNRECOGNIZED
    if _status_value(body.get("status")) == "success" and "verification" in body:
        return ResponseShape.ENVELOPED
    if "decision" in body or _status_value(body.get("status")) in TERMINAL_VALUES:
        return ResponseShape.FLAT
    return ResponseShape.UNRECOGNIZED


def classify(value: Any) -> DecisionStatus:
    status = _status_value(value)
    if status in TERMINAL_VALUES:
        return DecisionStatus(status)
    if status in PENDING_VALUES:
        return DecisionStatus.PENDING
    if status in ERROR_VALUES:
        return DecisionStatus.ERROR
    return DecisionStatus.UNKNOWN


def _from_fields(fields: Dict[str, Any], status: DecisionStatus, shape: ResponseShape,
                 raw_body: Dict[str, Any], session_id: Optional[str]) -> DecisionEnvelope:
    document = fields.get("document")
    person = fields.get("person")
    risk_labels = fields.get("riskLabels")
    insights = fields.get("insights")
    return DecisionEnvelope(
        status=status,
        raw_body=raw_body,
        shape=shape,
        session_id=fields.get("id") or fields.get("sessionId") or session_id,
        code=_to_int(fields.get("code")),
        reason=fields.get("reason"),
        reason_code=_to_int(fields.get("reasonCode")),
        document=document if isinstance(document, dict) else None,
        person=person if isinstance(person, dict) else None,
        risk_labels=risk_labels if isinstance(risk_labels, list) else None,
        decision_time=fields.get("decisionTime"),
        acceptance_time=fields.get("acceptanceTime"),
        decision_score=_to_float(fields.get("decisionScore")),
        insights=insights if isinstance(insights, list) else None,
        message=fields.get("message"),
    )


def _read_enveloped(body: Dict[str, Any], session_id: Optional[str]) -> DecisionEnvelope:
    verification = body.get("verification")
    if verification is None:
        return DecisionEnvelope(
            status=DecisionStatus.PENDING,
            raw_body=body,
            shape=ResponseShape.ENVELOPED,
            session_id=session_id,
            message="Decision processing not complete",
        )
    if not isinstance(verification, dict):
        return DecisionEnvelope(status=DecisionStatus.UNKNOWN, raw_body=body,
                                shape=ResponseShape.ENVELOPED, session_id=session_id)
    status = classify(verification.get("status") or verification.get("decision"))
    return _from_fields(verification, status, ResponseShape.ENVELOPED, body, session_id)


def _read_flat(body: Dict[str, Any], session_id: Optional[str]) -> DecisionEnvelope:
    status = classify(body.get("decision") or body.get("status"))
    return _from_fields(body, status, ResponseShape.FLAT, body, session_id)


def normalize_payload(body: Optional[Dict[str, Any]],
                      session_id: Optional[str] = None) -> DecisionEnvelope:
    """Normalize a parsed decision body that did not come through the client."""
    shape = detect_payload_shape(body)
    if shape is ResponseShape.ENVELOPED:
        return _read_enveloped(body, session_id)
    if shape is ResponseShape.FLAT:
        return _read_flat(body, session_id)

    # Unrecognized: keep the body, but still honour explicit pending/error markers
    status = classify(body.get("status")) if isinstance(body, dict) else DecisionStatus.UNKNOWN
    message = body.get("message") if isinstance(body, dict) else None
    return DecisionEnvelope(
        status=status,
        raw_body=body,
        shape=ResponseShape.UNRECOGNIZED,
        session_id=session_id,
        message=message if isinstance(message, str) else None,
    )


def normalize(raw: RawDecisionResponse) -> DecisionEnvelope:
    shape = detect_shape(raw)
    if shape is ResponseShape.NOT_READY:
        return DecisionEnvelope(
            status=DecisionStatus.PENDING,
            raw_body=raw.body,
            shape=shape,
            session_id=raw.session_id,
            message="Decision not ready yet",
        )
    return normalize_payload(raw.body, session_id=raw.session_id)
