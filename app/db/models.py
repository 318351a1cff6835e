"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CallLog(Base):
    """Exported transcript of a finished call."""

    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, index=True)
    call_sid = Column(String, unique=True, index=True, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    status = Column(String, nullable=False)  # Twilio terminal status: completed, failed, busy, no-answer, canceled
    turn_count = Column(Integer, default=0, nullable=False)
    transcript = Column(JSON, nullable=True)  # List of {"role", "content"} dicts
