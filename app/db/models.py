"""Database models."""
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


PHONE_SEPARATORS = (" ", "-", "(", ")", ".", "+", "/")


def phone_digits(column):
    """SQL expression for a free-form phone column with separators stripped."""
    expr = column
    for separator in PHONE_SEPARATORS:
        expr = func.replace(expr, separator, "")
    return expr


class Customer(Base):
    """Customer identity (only the fields the comms hub touches)."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    display_name = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    company = Column(String, nullable=True)
    phone = Column(String, nullable=True)  # legacy free-form number
    created_at = Column(DateTime, default=utcnow, nullable=False)

    phone_links = relationship("PhoneLink", back_populates="customer")


class PhoneLink(Base):
    """Normalized phone number -> customer mapping."""

    __tablename__ = "customer_phones"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String, unique=True, index=True, nullable=False)  # canonical key
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    contact_name = Column(String, nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="phone_links")


class TeamPhone(Base):
    """Call-forwarding target."""

    __tablename__ = "team_phones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    ring_order = Column(Integer, default=0, nullable=False)


class Call(Base):
    """One telephony session, keyed by the carrier's call sid."""

    __tablename__ = "calls"

    id = Column(Integer, primary_key=True, index=True)
    call_sid = Column(String, unique=True, index=True, nullable=False)
    direction = Column(String, default="inbound", nullable=False)
    caller_phone = Column(String, nullable=True)
    caller_name = Column(String, nullable=True)
    receiver_phone = Column(String, nullable=True)
    status = Column(String, default="ringing", nullable=False)  # see CallStatus
    answered_by = Column(String, nullable=True)
    duration = Column(Integer, nullable=True)
    recording_url = Column(String, nullable=True)
    voicemail_url = Column(String, nullable=True)
    version = Column(Integer, default=1, nullable=False)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)


class Message(Base):
    """One SMS/MMS/voicemail event. Only read/archived/status ever change."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    direction = Column(String, nullable=False)  # inbound, outbound
    channel = Column(String, default="sms", nullable=False)  # sms, mms, voicemail
    customer_phone = Column(String, nullable=False, index=True)  # raw, as received
    customer_name = Column(String, nullable=True)
    body = Column(Text, nullable=False, default="")
    media_urls = Column(JSON, nullable=True)
    provider_sid = Column(String, unique=True, nullable=True)
    status = Column(String, default="received", nullable=False)
    error = Column(Text, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
