"""
SQLAlchemy Database Models
Maps to the Supabase PostgreSQL tables used by the call core
"""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone
import uuid

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(Base):
    """Client model - maps to clients table (owned by the CRM)"""
    __tablename__ = "clients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255))
    email = Column(String(255))
    company = Column(String(255))
    phone_number = Column(String(20), index=True)
    payment_status = Column(String(50), default="pending")
    call_preferences = Column(JSONB, default=dict, server_default=text("'{}'::jsonb"))
    next_follow_up = Column(DateTime(timezone=True))
    last_call_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    calls = relationship("Call", back_populates="client")
    attempts = relationship("CallAttempt", back_populates="client")

    __table_args__ = (
        Index("ix_clients_follow_up_due", "payment_status", "next_follow_up"),
    )


class Call(Base):
    """Call model - maps to calls table, one row per provider call_control_id"""
    __tablename__ = "calls"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    call_control_id = Column(String(255), nullable=False, unique=True)
    call_session_id = Column(String(255))
    direction = Column(String(20), nullable=False, default="inbound")
    from_number = Column(String(20))
    to_number = Column(String(20))
    call_state = Column(String(50), nullable=False, default="initiated")
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL"))
    answered_at = Column(DateTime(timezone=True))
    ended_at = Column(DateTime(timezone=True))
    duration_seconds = Column(Integer)
    summary = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=text("now()"))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    client = relationship("Client", back_populates="calls")
    recording = relationship("CallRecording", back_populates="call", uselist=False)


class CallAttempt(Base):
    """Call attempt model - maps to call_attempts table"""
    __tablename__ = "call_attempts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    call_id = Column(UUID(as_uuid=True), ForeignKey("calls.id", ondelete="SET NULL"))
    attempt_number = Column(Integer, nullable=False, default=1)
    status = Column(String(50), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=text("now()"))

    client = relationship("Client", back_populates="attempts")

    __table_args__ = (
        Index("ix_call_attempts_client_window", "client_id", "created_at"),
        Index("ix_call_attempts_client_attempt", "client_id", "attempt_number"),
    )


class CallRecording(Base):
    """Call recording model - maps to call_recordings table, one row per call"""
    __tablename__ = "call_recordings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    call_id = Column(UUID(as_uuid=True), ForeignKey("calls.id", ondelete="CASCADE"), nullable=False)
    recording_url = Column(Text, nullable=False)
    channels = Column(String(20))
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=text("now()"))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    call = relationship("Call", back_populates="recording")

    __table_args__ = (
        UniqueConstraint("call_id", name="uq_call_recordings_call_id"),
    )


class ErrorLog(Base):
    """Error log model - maps to error_logs table"""
    __tablename__ = "error_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source = Column(String(100), nullable=False)
    error_type = Column(String(100), nullable=False, index=True)
    severity = Column(String(20), nullable=False, default="error")
    message = Column(Text, nullable=False)
    context = Column(JSONB, default=dict, server_default=text("'{}'::jsonb"))
    resolved = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=text("now()"), index=True)


class HealthCheck(Base):
    """Health check model - maps to health_checks table"""
    __tablename__ = "health_checks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    service = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    response_time_ms = Column(Integer, default=0)
    details = Column(JSONB, default=dict, server_default=text("'{}'::jsonb"))
    checked_at = Column(DateTime(timezone=True), default=_utcnow, server_default=text("now()"))
