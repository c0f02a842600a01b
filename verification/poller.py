import logging
import time
from typing import Callable, Optional

from .errors import VerificationError
from .models import DecisionEnvelope, PollOutcome, PollState
from .normalizer import normalize
from .observability import log_event

logger = logging.getLogger(__name__)


class PollLoop:
    """
    Polls the decision endpoint until a verdict arrives or the budget runs out.

    States: POLLING -> TERMINAL | EXHAUSTED | FAILED. Each cycle sleeps first,
    then performs exactly one fetch, so ``max_attempts`` bounds both the number
    of requests and the total time a run can spend waiting.
    """

    def __init__(self,
                 client,
                 max_attempts: int = 10,
                 interval: float = 5.0,
                 sleep: Callable[[float], None] = time.sleep,
                 normalizer: Callable = normalize):
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.client = client
        self.max_attempts = max_attempts
        self.interval = interval
        self.sleep = sleep
        self.normalizer = normalizer

    @classmethod
    def from_settings(cls, settings, client, sleep: Callable[[float], None] = time.sleep) -> "PollLoop":
        return cls(
            client,
            max_attempts=settings.POLL_MAX_ATTEMPTS,
            interval=settings.POLL_INTERVAL_SECONDS,
            sleep=sleep,
        )

    def run(self, session_id: str) -> PollOutcome:
        attempts = 0
        last_decision: Optional[DecisionEnvelope] = None

        while attempts < self.max_attempts:
            self.sleep(self.interval)
            attempts += 1

            try:
                decision = self.normalizer(self.client.fetch_decision(session_id))
            except VerificationError as e:
                if not e.transient or attempts >= self.max_attempts:
                    log_event(logger, logging.ERROR, "poll.failed",
                              session_id=session_id, attempt=attempts,
                              max_attempts=self.max_attempts, error=e.code)
                    return PollOutcome(
                        state=PollState.FAILED,
                        attempts_used=attempts,
                        last_decision=last_decision,
                        error=e,
                    )
                log_event(logger, logging.WARNING, "poll.transient_error",
                          session_id=session_id, attempt=attempts,
                          max_attempts=self.max_attempts, error=e.code,
                          http_status=getattr(e, "http_status", None))
                continue

            last_decision = decision
            if decision.is_terminal:
                log_event(logger, logging.INFO, "poll.terminal",
                          session_id=session_id, attempt=attempts,
                          decision=decision.status.value)
                return PollOutcome(
                    state=PollState.TERMINAL,
                    attempts_used=attempts,
                    terminal_decision=decision,
                    last_decision=decision,
                )

            log_event(logger, logging.INFO, "poll.not_ready",
                      session_id=session_id, attempt=attempts,
                      max_attempts=self.max_attempts, status=decision.status.value)

        log_event(logger, logging.WARNING, "poll.exhausted",
                  session_id=session_id, attempts=attempts)
        return PollOutcome(
            state=PollState.EXHAUSTED,
            attempts_used=attempts,
            last_decision=last_decision,
        )
