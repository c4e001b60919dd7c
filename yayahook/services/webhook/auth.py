"""Signature and freshness checks for inbound Yaya Wallet webhooks.

The provider signs the concatenation of the event's fields in a fixed order
with HMAC-SHA256 and sends the lowercase hex digest in a request header. The
field order below is part of the provider contract; changing it breaks every
signature.
"""

import hashlib
import hmac
import logging
import time
from enum import Enum
from typing import Callable

from yayahook.common.logging import logger as default_logger
from yayahook.services.webhook.schemas import Event


class AuthResult(str, Enum):
    """First failing check for one (event, token) pair."""

    OK = "ok"
    STALE_TIMESTAMP = "invalid_timestamp"
    INVALID_SIGNATURE = "invalid_signature"


def signing_string(event: Event) -> str:
    """Concatenate event fields in provider order, without separators."""

    return "".join(
        [
            event.id,
            event.canonical_amount,
            event.currency.value,
            str(event.created_at_time),
            str(event.timestamp),
            event.cause,
            event.full_name,
            event.account_name,
            event.invoice_url,
        ]
    )


def compute_signature(secret: str, event: Event) -> str:
    """HMAC-SHA256 of the signing string as lowercase hex."""

    return hmac.new(secret.encode("utf-8"), signing_string(event).encode("utf-8"), hashlib.sha256).hexdigest()


class WebhookAuthenticator:
    """Decides whether an inbound event is authentic and fresh.

    The secret, window and clock are fixed at construction; nothing here does
    I/O or keeps mutable state, so one instance is shared by all requests.
    """

    def __init__(
        self,
        secret: str,
        freshness_window_seconds: int,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | None = None,
    ) -> None:
        if not secret:
            raise ValueError("webhook secret must not be empty")
        if freshness_window_seconds <= 0:
            raise ValueError("freshness window must be positive")
        self._secret = secret
        self.freshness_window_seconds = freshness_window_seconds
        self.clock = clock
        self.log = log or default_logger

    def expected_signature(self, event: Event) -> str:
        return compute_signature(self._secret, event)

    def is_fresh(self, event: Event, now: int) -> bool:
        """Accept only `0 <= now - timestamp <= window`; future events fail."""

        diff = now - event.timestamp
        self.log.debug(
            "validating timestamp webhook_id=%s timestamp=%s now=%s diff=%s window=%s",
            event.id,
            event.timestamp,
            now,
            diff,
            self.freshness_window_seconds,
        )
        return 0 <= diff <= self.freshness_window_seconds

    def signature_matches(self, event: Event, provided: str) -> bool:
        """Constant-time comparison; length mismatch is just "not equal"."""

        expected = self.expected_signature(event)
        # Bytes, so compare_digest never raises on non-ASCII header values.
        matched = hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8", "surrogatepass"))
        self.log.debug("signature compared webhook_id=%s match=%s", event.id, matched)
        return matched

    def check(self, event: Event, provided: str, now: int | None = None) -> AuthResult:
        """Run freshness then signature and report the first failure."""

        if now is None:
            now = int(self.clock())
        if not self.is_fresh(event, now):
            return AuthResult.STALE_TIMESTAMP
        if not self.signature_matches(event, provided):
            return AuthResult.INVALID_SIGNATURE
        return AuthResult.OK

    def verify(self, event: Event, provided: str, now: int | None = None) -> bool:
        """Boolean decision; never raises for any event/token pair."""

        return self.check(event, provided, now) is AuthResult.OK
