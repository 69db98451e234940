"""Hands every validation failure to the one registered callback."""

from typing import Optional

import structlog

from safer_httpx.config import get_settings
from safer_httpx.models import ValidationCallback, ValidationOutcome
from safer_httpx.payload import dump_payload

logger = structlog.get_logger()


def _noop(outcome: ValidationOutcome) -> None:
    return None


class Reporter:
    """Single-callback reporting channel.

    report() is synchronous and called once per failing phase of a call.
    Exceptions raised by the callback propagate to the caller untouched.
    Whether the validation error itself propagates is not decided here.
    """

    def __init__(self, callback: Optional[ValidationCallback] = None):
        self.callback = callback or _noop
        self._log_payloads = get_settings().LOG_PAYLOADS

    def report(self, outcome: ValidationOutcome) -> None:
        """Log the failure and invoke the callback."""
        fields = {
            "mode": outcome.mode,
            "url": outcome.url,
            "status": outcome.status,
            "error": str(outcome.error),
            "error_type": type(outcome.error).__name__,
        }
        if self._log_payloads:
            fields["data"] = dump_payload(outcome.data)
        logger.warning("validation_failed", **fields)

        self.callback(outcome)
