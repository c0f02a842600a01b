from typing import Any, Dict, Optional

from .models import DecisionEnvelope, DecisionStatus


class DecisionReport:
    """
    Builds the caller-facing summary of a terminal decision
    Masks document and person identifiers unless masking is disabled
    """

    def __init__(self, mask_pii: bool = True):
        self.mask_pii = mask_pii

    def mask_document_number(self, number: Optional[str]) -> Optional[str]:
        """Show only the last 4 characters of a document number"""
        if not number:
            return None
        number = str(number)
        if not self.mask_pii:
            return number
        if len(number) > 4:
            return f"XXXX{number[-4:]}"
        return "XXXX"

    def mask_name(self, name: Optional[str]) -> Optional[str]:
        """Mask name showing only the first character"""
        if name is None:
            return None
        name = str(name).strip()
        if not name:
            return None
        if not self.mask_pii:
            return name
        return f"{name[0]}XXXX"

    def mask_date(self, value: Optional[str]) -> Optional[str]:
        """Keep only the year of a YYYY-MM-DD date"""
        if not value:
            return None
        if not self.mask_pii:
            return value
        return f"{str(value)[:4]}-XX-XX"

    @staticmethod
    def _percent(value: Any) -> int:
        try:
            return round(float(value or 0) * 100)
        except (TypeError, ValueError):
            return 0

    def build(self, decision: DecisionEnvelope) -> Dict[str, Any]:
        """Build standardized response with masked data"""
        document = decision.document or {}
        person = decision.person or {}
        approved = decision.status is DecisionStatus.APPROVED
        face_match = person.get("faceMatch")

        return {
            "sessionId": decision.session_id,
            "decision": decision.status.value,
            "code": decision.code,
            "reason": decision.reason,
            "reasonCode": decision.reason_code,
            "decisionTime": decision.decision_time,
            "acceptanceTime": decision.acceptance_time,
            "decisionScore": decision.decision_score or 0,
            "documentValidation": {
                "documentType": document.get("type") or "Unknown",
                "documentNumber": self.mask_document_number(document.get("number")) or "N/A",
                "isValid": approved,
                "country": document.get("country"),
                "validFrom": document.get("validFrom"),
                "validUntil": document.get("validUntil"),
                "confidence": self._percent(document.get("confidence")),
            },
            "faceMatch": {
                "confidence": self._percent(person.get("confidence")),
                "isMatch": face_match == "MATCH",
            },
            "checks": {
                "documentAuthenticity": bool(document.get("validDocument", False)),
                "faceMatchCheck": face_match == "MATCH",
                "documentDataExtraction": bool(document.get("dataExtracted", False)),
            },
            "person": {
                "firstName": self.mask_name(person.get("firstName")),
                "lastName": self.mask_name(person.get("lastName")),
                "dateOfBirth": self.mask_date(person.get("dateOfBirth")),
                "nationality": person.get("nationality"),
                "idNumber": self.mask_document_number(person.get("idNumber")),
            },
            "riskLabels": decision.risk_labels or [],
            "insights": decision.insights or [],
        }
