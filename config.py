from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Veriff Credentials
    VERIFF_API_KEY: str = ""
    VERIFF_SHARED_SECRET: str = ""

    # Provider Endpoints
    VERIFF_BASE_URL: str = "https://stationapi.veriff.com/v1"
    # Veriff rejects session creation without an HTTPS callback
    VERIFF_CALLBACK_URL: str = "https://example.com/callback"
    VERIFF_FULL_AUTO: bool = False
    VERIFF_FULL_AUTO_VERSION: str = "1.0.0"

    # HTTP / Concurrency
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    UPLOAD_WORKERS: int = 3

    # Decision Polling
    POLL_MAX_ATTEMPTS: int = 10
    POLL_INTERVAL_SECONDS: float = 5.0
    STATUS_CHECK_PATH: str = "/veriff/status"

    # Reporting
    MASK_PII: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_REDACT_SECRETS: bool = True
    LOG_BODY_PREVIEW_CHARS: int = 200

    class Config:
        env_file = ".env"

settings = Settings()

# Provider session ids are UUIDs
SESSION_ID_LENGTH = 36

# Internal context names -> Veriff media vocabulary
MEDIA_CONTEXT_MAP = {
    "DOCUMENT_FRONT": "document-front",
    "DOCUMENT_BACK": "document-back",
    "FACE": "face",
}

DEFAULT_MIME_TYPE = "image/jpeg"

REQUIRED_INPUT_FIELDS = ["document_front", "document_back", "face", "first_name", "last_name"]
