"""
Pydantic schemas for sentiment analysis.

`SentimentPayload` is the gate for raw model output; nothing the model
returns reaches the domain without passing it.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List

EMOTIONS = [
    "joy",
    "happy",
    "excited",
    "grateful",
    "hopeful",
    "content",
    "calm",
    "neutral",
    "tired",
    "bored",
    "sad",
    "lonely",
    "anxious",
    "stressed",
    "frustrated",
    "angry",
    "fearful",
]


class SentimentPayload(BaseModel):
    """Strict shape of the model's sentiment answer."""
    score: float = Field(..., ge=-1.0, le=1.0)
    magnitude: float = Field(..., ge=0.0, le=1.0)
    primary_emotion: str = Field(..., alias="primaryEmotion")
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("primary_emotion")
    @classmethod
    def check_vocabulary(cls, v: str) -> str:
        emotion = v.strip().lower()
        if emotion not in EMOTIONS:
            raise ValueError(f"unknown emotion '{v}'")
        return emotion

    class Config:
        strict = True


class SentimentResult(BaseModel):
    """Sentiment returned to callers."""
    score: float
    magnitude: float
    primary_emotion: str
    confidence: float

    @classmethod
    def neutral(cls) -> "SentimentResult":
        return cls(score=0.0, magnitude=0.0, primary_emotion="neutral", confidence=0.0)


class BatchSentimentResponse(BaseModel):
    """Schema for batch analysis acknowledgement."""
    queued: int
    entry_ids: List[int] = []
