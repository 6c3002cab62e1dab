"""
Pydantic schemas for the message board API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateThreadPayload(BaseModel):
    text: str = Field(..., min_length=1)
    delete_password: str = Field(..., min_length=1)


class ReportThreadPayload(BaseModel):
    thread_id: str = Field(..., min_length=1)


class DeleteThreadPayload(BaseModel):
    thread_id: str = Field(..., min_length=1)
    delete_password: str = Field(..., min_length=1)


class CreateReplyPayload(BaseModel):
    thread_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    delete_password: str = Field(..., min_length=1)


class ReportReplyPayload(BaseModel):
    thread_id: str = Field(..., min_length=1)
    reply_id: str = Field(..., min_length=1)


class DeleteReplyPayload(BaseModel):
    thread_id: str = Field(..., min_length=1)
    reply_id: str = Field(..., min_length=1)
    delete_password: str = Field(..., min_length=1)


class PublicReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    text: str
    created_on: datetime


class PublicThread(BaseModel):
    """Thread as shown to readers; moderation and auth fields are never present."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    text: str
    created_on: datetime
    bumped_on: datetime
    replies: list[PublicReply]
    replycount: int


class ErrorResponse(BaseModel):
    error: str
    fields: Optional[list[str]] = None


class SelfTestCaseResult(BaseModel):
    title: str
    fullTitle: str
    state: Literal["passed", "failed"]
    duration: Optional[float] = None
    err: Optional[str] = None


class SelfTestStats(BaseModel):
    tests: int
    passes: int
    failures: int
    duration: float


class SelfTestResponse(BaseModel):
    status: Literal["finished", "running", "error"]
    stats: Optional[SelfTestStats] = None
    tests: Optional[list[SelfTestCaseResult]] = None
    error: Optional[str] = None
