"""
Pydantic schemas for AI usage reporting.
"""
from pydantic import BaseModel
from typing import Dict
from decimal import Decimal


class UsageSummaryResponse(BaseModel):
    """Aggregated usage over a trailing number of days."""
    days: int
    total_tokens: int
    total_cost: Decimal
    operation_counts: Dict[str, int]
