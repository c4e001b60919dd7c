"""Webhook persistence model (one row per provider event id)."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from yayahook.common.db import Base


class WebhookEvent(Base):
    """Latest delivered payload for one Yaya Wallet event id."""

    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Canonical decimal text exactly as signed; never a numeric column.
    amount: Mapped[str] = mapped_column(Text)
    currency: Mapped[str] = mapped_column(String)
    created_at_time: Mapped[int] = mapped_column(BigInteger)
    timestamp: Mapped[int] = mapped_column(BigInteger)
    cause: Mapped[str] = mapped_column(Text)
    full_name: Mapped[str] = mapped_column(Text)
    account_name: Mapped[str] = mapped_column(Text)
    invoice_url: Mapped[str] = mapped_column(Text)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
