"""
Structured, secret-redacting log events for the verification core.

Components call ``log_event`` instead of formatting messages themselves, so the
redaction policy configured at startup applies to every field they emit.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Tuple

SENSITIVE_KEYS = ("secret", "private_key", "password", "token", "content")
SIGNATURE_KEYS = ("signature",)
BODY_KEYS = ("body", "payload", "raw")

REDACTED = "***"


@dataclass
class RedactionPolicy:
    enabled: bool = True
    secrets: Tuple[str, ...] = field(default_factory=tuple, repr=False)
    body_preview_chars: int = 200

    def scrub(self, text: str) -> str:
        if not self.enabled:
            return text
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, REDACTED)
        return text

    def redact(self, key: str, value: Any) -> Any:
        if value is None:
            return None
        lowered = key.lower()
        if self.enabled and any(s in lowered for s in SENSITIVE_KEYS):
            return REDACTED
        if self.enabled and any(s in lowered for s in SIGNATURE_KEYS):
            return f"{str(value)[:8]}..."
        if any(s in lowered for s in BODY_KEYS):
            value = str(value)
            if len(value) > self.body_preview_chars:
                value = value[:self.body_preview_chars] + "..."
        if isinstance(value, str):
            return self.scrub(value)
        return value


_policy = RedactionPolicy()


class SecretFilter(logging.Filter):
    """Scrubs configured secret values from every record, including tracebacks"""

    def __init__(self, policy: RedactionPolicy):
        super().__init__()
        self.policy = policy

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.policy.enabled:
            return True
        message = record.getMessage()
        scrubbed = self.policy.scrub(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.policy.scrub(record.exc_text)
        return True


def configure_logging(settings, secrets: Optional[Iterable[str]] = None) -> RedactionPolicy:
    """Apply LOG_LEVEL and the redaction policy from settings to the root logger."""
    global _policy
    _policy = RedactionPolicy(
        enabled=settings.LOG_REDACT_SECRETS,
        secrets=tuple(s for s in (secrets or ()) if s),
        body_preview_chars=settings.LOG_BODY_PREVIEW_CHARS,
    )

    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO))
    for handler in root.handlers:
        for existing in [f for f in handler.filters if isinstance(f, SecretFilter)]:
            handler.removeFilter(existing)
        handler.addFilter(SecretFilter(_policy))
    return _policy


def format_event(event: str, policy: RedactionPolicy, **fields) -> str:
    parts = [event]
    for key, value in fields.items():
        redacted = policy.redact(key, value)
        if redacted is None:
            continue
        parts.append(f"{key}={redacted}")
    return " ".join(parts)


def log_event(logger: logging.Logger, level: int, event: str, **fields) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, format_event(event, _policy, **fields))
