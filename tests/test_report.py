"""
Tests for the decision report
"""
import pytest

from verification.models import DecisionEnvelope, DecisionStatus
from verification.report import DecisionReport


@pytest.mark.parametrize("name, expected", [
    (None, None),
    ("", None),
    ("   ", None),
    ("  Test ", "TXXXX"),
    (42, "4XXXX"),
])
def test_mask_name(name, expected):
    assert DecisionReport(mask_pii=True).mask_name(name) == expected


def test_mask_name_unmasked_is_trimmed():
    report = DecisionReport(mask_pii=False)
    assert report.mask_name(" Test ") == "Test"
    assert report.mask_name(" ") is None


def test_build_with_blank_person_fields():
    envelope = DecisionEnvelope(
        status=DecisionStatus.APPROVED,
        person={"firstName": "\t", "lastName": "", "faceMatch": "MATCH", "confidence": 0.9},
        document={"number": "AB12"},
    )

    data = DecisionReport().build(envelope)

    assert data["person"]["firstName"] is None
    assert data["person"]["lastName"] is None
    assert data["faceMatch"] == {"confidence": 90, "isMatch": True}
    assert data["documentValidation"]["documentNumber"] == "XXXX"
