"""Wire schemas for the webhook receiver."""

import json
import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


# Provider timestamps are signed 64-bit epoch seconds.
EpochSeconds = Annotated[StrictInt, Field(ge=-(2**63), le=2**63 - 1)]

_AMOUNT_TEXT = re.compile(r"[0-9]+(\.[0-9]+)?([eE][+-]?[0-9]+)?")


class Currency(str, Enum):
    """Currencies Yaya Wallet currently notifies about."""

    ETB = "ETB"


class Event(BaseModel):
    """One inbound payment notification, immutable once decoded."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictStr
    amount: Decimal = Field(ge=0, allow_inf_nan=False)
    currency: Currency
    created_at_time: EpochSeconds
    timestamp: EpochSeconds
    cause: StrictStr
    full_name: StrictStr
    account_name: StrictStr
    invoice_url: StrictStr

    @field_validator("amount", mode="before")
    @classmethod
    def _plain_decimal(cls, value):
        """Accept JSON numbers and plain decimal text only.

        Anything lax Decimal parsing would rewrite (underscores, padding,
        signs, floats) is rejected, and negative zero becomes zero.
        """

        if isinstance(value, bool):
            raise ValueError("amount must be a decimal number")
        if isinstance(value, int):
            value = Decimal(value)
        elif isinstance(value, str):
            if not _AMOUNT_TEXT.fullmatch(value):
                raise ValueError("amount must be plain decimal text")
            value = Decimal(value)
        elif not isinstance(value, Decimal):
            raise ValueError("amount must be a decimal number")
        if value.is_zero() and value.is_signed():
            value = value.copy_abs()
        return value

    @classmethod
    def from_body(cls, raw: bytes) -> "Event":
        """Decode a request body, keeping the amount's received digits.

        JSON floats are parsed straight into `Decimal` so no binary rounding
        happens between the wire and the signature. Raises `ValueError`
        (decode or validation) for anything that is not an Event.
        """

        return cls.model_validate(json.loads(raw, parse_float=Decimal))

    @property
    def canonical_amount(self) -> str:
        """Fixed-point decimal text used for signing and storage."""

        return format(self.amount, "f")


class StoredEvent(BaseModel):
    """Persisted projection of an Event plus system timestamps."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: str
    currency: str
    created_at_time: int
    timestamp: int
    cause: str
    full_name: str
    account_name: str
    invoice_url: str
    first_seen_at: datetime
    last_updated_at: datetime

    @field_validator("first_seen_at", "last_updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is written in UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class WebhookResponse(BaseModel):
    """Response envelope: a status code and either a message or an error."""

    status_code: int
    message: str | None = None
    error: str | None = None
