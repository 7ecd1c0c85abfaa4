from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

JSON_TYPE = JSON().with_variant(JSONB, "postgresql")


class AssistantSessionRecord(Base):
    __tablename__ = "assistant_sessions"

    session_id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    fields = Column(JSON_TYPE, nullable=False, default=dict)
    locked_fields = Column(JSON_TYPE, nullable=False, default=list)
    turn_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
