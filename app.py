import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from verification import __version__
from verification.errors import (
    InvalidSessionId,
    PreconditionFailed,
    VerificationError,
)
from verification.models import DecisionStatus, MediaContext, MediaFile, VerificationRequest
from verification.normalizer import normalize_payload
from verification.observability import configure_logging, log_event
from verification.orchestrator import VerificationOrchestrator, build_orchestrator
from verification.report import DecisionReport
from verification.signer import verify_signature
from verification.utils import guess_mime_type, parse_json

configure_logging(settings, secrets=[settings.VERIFF_SHARED_SECRET, settings.VERIFF_API_KEY])
logger = logging.getLogger("veriff.api")


app = FastAPI(
    title="Veriff Verification Service",
    description="Identity document and selfie verification through Veriff",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(exc: VerificationError) -> int:
    if isinstance(exc, (PreconditionFailed, InvalidSessionId)):
        return 400
    return 502


def raise_http(exc: VerificationError):
    raise HTTPException(
        status_code=error_status(exc),
        detail={"status": "error", "error": exc.to_dict()}
    )


@lru_cache(maxsize=1)
def _shared_orchestrator() -> VerificationOrchestrator:
    return build_orchestrator(settings)


def get_orchestrator() -> VerificationOrchestrator:
    """One orchestrator, one provider HTTP session for the whole process"""
    try:
        return _shared_orchestrator()
    except VerificationError as e:
        raise_http(e)


@app.on_event("shutdown")
def close_provider_session():
    if _shared_orchestrator.cache_info().currsize:
        _shared_orchestrator().client.close()
    _shared_orchestrator.cache_clear()


async def read_media(upload: Optional[UploadFile], context: MediaContext) -> Optional[MediaFile]:
    if not upload or not upload.filename:
        return None
    content = await upload.read()
    return MediaFile(
        context=context,
        content=content,
        mime_type=guess_mime_type(upload.filename, upload.content_type),
        filename=upload.filename,
    )


# ------------------------
# Verification API
# ------------------------
@app.post("/veriff/submit")
async def submit_verification(
    document_front: Optional[UploadFile] = File(None),
    document_back: Optional[UploadFile] = File(None),
    selfie: Optional[UploadFile] = File(None),
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """
    Create a Veriff session, upload the document front/back and selfie,
    submit it and wait (bounded) for the decision.
    """
    request = VerificationRequest(
        document_front=await read_media(document_front, MediaContext.DOCUMENT_FRONT),
        document_back=await read_media(document_back, MediaContext.DOCUMENT_BACK),
        face=await read_media(selfie, MediaContext.FACE),
        first_name=first_name,
        last_name=last_name,
    )

    try:
        result = await run_in_threadpool(orchestrator.submit, request)
    except VerificationError as e:
        log_event(logger, logging.ERROR, "api.submit_failed", error=e.code,
                  session_id=e.session_id)
        raise_http(e)

    return result.to_dict()


@app.get("/veriff/status")
async def verification_status(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator)
):
    """Look up the current decision for a session created earlier."""
    if not session_id or not session_id.strip():
        raise_http(PreconditionFailed(["sessionId"], "Session ID is required"))

    try:
        decision = await run_in_threadpool(orchestrator.check_status, session_id)
    except VerificationError as e:
        log_event(logger, logging.ERROR, "api.status_failed", error=e.code,
                  session_id=e.session_id)
        raise_http(e)

    if decision.is_terminal:
        return {
            "status": "completed",
            "sessionId": decision.session_id,
            "decision": decision.status.value,
            "data": orchestrator.report.build(decision),
        }

    return {
        "status": decision.status.value,
        "sessionId": decision.session_id,
        "decision": None,
        "message": decision.message,
        "data": {"rawResponse": decision.raw_body} if decision.status is DecisionStatus.UNKNOWN else None,
    }


@app.post("/veriff/callback")
async def verification_callback(request: Request):
    """Receive a signed decision callback from Veriff. Nothing is stored."""
    raw = await request.body()
    signature = request.headers.get("X-HMAC-SIGNATURE", "")

    if not verify_signature(raw, settings.VERIFF_SHARED_SECRET, signature):
        log_event(logger, logging.WARNING, "api.callback_rejected", body_length=len(raw))
        raise HTTPException(
            status_code=401,
            detail={"status": "error", "error": {"code": "invalid_signature",
                                                 "message": "Callback signature mismatch"}}
        )

    body = parse_json(raw.decode("utf-8", errors="replace"))
    decision = normalize_payload(body if isinstance(body, dict) else None)
    log_event(logger, logging.INFO, "api.callback_received",
              session_id=decision.session_id, decision=decision.status.value)

    response = {"status": decision.status.value, "sessionId": decision.session_id}
    if decision.is_terminal:
        response["data"] = DecisionReport(mask_pii=settings.MASK_PII).build(decision)
    return response


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "veriff-verification"
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
