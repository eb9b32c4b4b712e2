"""
AI usage ledger. Rows are append-only.
"""
from sqlalchemy import Column, String, Integer, Numeric, Index
from app.db.base import BaseModel


class UsageRecord(BaseModel):
    """Token usage and cost of one language model call."""
    __tablename__ = "ai_usage"

    user_id = Column(String(64), nullable=False)
    operation_type = Column(String(20), nullable=False)  # "sentiment" or "summary"
    model = Column(String(100), nullable=False)
    tokens_used = Column(Integer, nullable=False, default=0)
    cost_usd = Column(Numeric(12, 6), nullable=False, default=0)

    # Rate-limit windows scan by user, operation and time
    __table_args__ = (
        Index("ix_ai_usage_user_op_created", "user_id", "operation_type", "created_at"),
    )
