"""Unit tests for webhook signature and freshness checks."""

import pytest
from pydantic import ValidationError

from conftest import REFERENCE_PAYLOAD, REFERENCE_SIGNATURE
from yayahook.services.webhook.auth import AuthResult, WebhookAuthenticator, compute_signature, signing_string
from yayahook.services.webhook.schemas import Event


T = 1700000000


def make_authenticator(window: int = 300) -> WebhookAuthenticator:
    return WebhookAuthenticator("secret", window, clock=lambda: T)


def test_signing_string_uses_provider_field_order(reference_event):
    """Fields are concatenated in the provider's fixed order, no separators."""

    assert signing_string(reference_event) == (
        "abc123100ETB17000000001700000000TestingAbebe Kebedeabebekebede1"
        "https://yayawallet.com/en/invoice/xxxx"
    )


def test_reference_signature(reference_event):
    """The reference event signs to the known HMAC-SHA256 hex digest."""

    assert compute_signature("secret", reference_event) == REFERENCE_SIGNATURE


def test_signature_is_deterministic(reference_event):
    """Repeated signing of one event yields one digest."""

    signatures = {compute_signature("secret", reference_event) for _ in range(5)}
    assert len(signatures) == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"id": "abc124"},
        {"amount": "101"},
        {"amount": "100.0"},
        {"created_at_time": T + 1},
        {"timestamp": T - 1},
        {"cause": "testing"},
        {"full_name": "Abebe  Kebede"},
        {"account_name": "abebekebede2"},
        {"invoice_url": "https://yayawallet.com/en/invoice/xxxy"},
    ],
)
def test_any_field_change_changes_signature(make_event, overrides):
    """A single changed field, even amount text alone, changes the digest."""

    assert compute_signature("secret", make_event(**overrides)) != REFERENCE_SIGNATURE


def test_secret_change_changes_signature(reference_event):
    """The digest depends on the shared secret."""

    assert compute_signature("other", reference_event) != REFERENCE_SIGNATURE


@pytest.mark.parametrize(
    ("timestamp", "accepted"),
    [(T, True), (T - 300, True), (T - 301, False), (T + 1, False)],
)
def test_freshness_boundary(make_event, timestamp, accepted):
    """Window edges are inclusive; older or future timestamps fail."""

    authenticator = make_authenticator()
    event = make_event(timestamp=timestamp)
    assert authenticator.is_fresh(event, T) is accepted


def test_verify_accepts_reference_event(reference_event):
    """A fresh, correctly signed event is authentic."""

    assert make_authenticator().verify(reference_event, REFERENCE_SIGNATURE) is True


def test_verify_uses_explicit_now_over_clock(reference_event):
    """An explicit `now` overrides the injected clock."""

    authenticator = make_authenticator()
    assert authenticator.verify(reference_event, REFERENCE_SIGNATURE, now=T + 301) is False


def test_stale_event_with_valid_signature_fails_freshness_first(make_event):
    """Freshness is decided before the signature is looked at."""

    authenticator = make_authenticator()
    stale = make_event(timestamp=T - 301)
    signature = compute_signature("secret", stale)
    assert authenticator.check(stale, signature) is AuthResult.STALE_TIMESTAMP


@pytest.mark.parametrize(
    "token",
    [
        REFERENCE_SIGNATURE.upper(),
        REFERENCE_SIGNATURE[:-1],
        REFERENCE_SIGNATURE + "0",
        "",
        "zz-not-hex",
        "é" * 64,
        "\ud800",
    ],
)
def test_bad_tokens_are_rejected_without_raising(reference_event, token):
    """Odd lengths and non-ASCII tokens are plain mismatches."""

    authenticator = make_authenticator()
    assert authenticator.check(reference_event, token) is AuthResult.INVALID_SIGNATURE
    assert authenticator.verify(reference_event, token) is False


def test_decimal_amount_text_is_preserved():
    """A JSON number keeps its received digits in the signing string."""

    event = Event.from_body(
        b'{"id":"abc123","amount":100.50,"currency":"ETB","created_at_time":1700000000,'
        b'"timestamp":1700000000,"cause":"Testing","full_name":"Abebe Kebede",'
        b'"account_name":"abebekebede1","invoice_url":"https://yayawallet.com/en/invoice/xxxx"}'
    )
    assert event.canonical_amount == "100.50"
    assert compute_signature("secret", event) == (
        "5945249ed6fe460af5422425e4ad4da94c8f7b59f37041598541684b8c952e92"
    )


def test_numeric_and_string_amounts_sign_alike(make_event):
    """`100` and `"100"` are the same amount on the wire."""

    assert compute_signature("secret", make_event(amount=100)) == REFERENCE_SIGNATURE


@pytest.mark.parametrize(
    "amount",
    ["100_000", " 100 ", "100 ", "+100", "-1", "-0", "-0.00", "1,000", "0x10", "", 1.5, True, None],
)
def test_amount_rejects_text_lax_parsing_would_rewrite(amount):
    """Only plain decimal text or JSON numbers decode as an amount."""

    with pytest.raises(ValidationError):
        Event.model_validate({**REFERENCE_PAYLOAD, "amount": amount})


def test_negative_zero_json_number_becomes_zero():
    """A JSON `-0.0` decodes to an unsigned zero amount."""

    body = (
        b'{"id":"abc123","amount":-0.0,"currency":"ETB","created_at_time":1700000000,'
        b'"timestamp":1700000000,"cause":"Testing","full_name":"Abebe Kebede",'
        b'"account_name":"abebekebede1","invoice_url":"https://yayawallet.com/en/invoice/xxxx"}'
    )
    assert Event.from_body(body).canonical_amount == "0.0"


@pytest.mark.parametrize("field", ["created_at_time", "timestamp"])
@pytest.mark.parametrize("value", [2**63, 2**64, -(2**63) - 1])
def test_epoch_fields_must_fit_int64(field, value):
    """Timestamps outside signed 64-bit range do not decode."""

    with pytest.raises(ValidationError):
        Event.model_validate({**REFERENCE_PAYLOAD, field: value})


def test_epoch_fields_accept_int64_limits(make_event):
    """The int64 limits themselves are valid timestamps."""

    event = make_event(created_at_time=2**63 - 1, timestamp=-(2**63))
    assert str(event.created_at_time) in signing_string(event)


@pytest.mark.parametrize(("secret", "window"), [("", 300), ("secret", 0), ("secret", -5)])
def test_authenticator_requires_secret_and_window(secret, window):
    """An empty secret or non-positive window is a configuration error."""

    with pytest.raises(ValueError):
        WebhookAuthenticator(secret, window)
