from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FunnelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_default: bool = False
    auto_assignment: bool = False


class FunnelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_default: Optional[bool] = None
    auto_assignment: Optional[bool] = None


class StepCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    first_step: bool = False
    order: int = 0
    assign_to_team: bool = False
    kanban_code: Optional[str] = Field(default=None, max_length=64)


class StepUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    first_step: Optional[bool] = None
    order: Optional[int] = None
    assign_to_team: Optional[bool] = None
    kanban_code: Optional[str] = Field(default=None, max_length=64)


class StepMessageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    message_instruction: Optional[str] = None
    fixed_message: Optional[str] = None
    shipping_time: int = Field(default=0, ge=0)
    shipping_order: int = 0


class StepMessageUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    message_instruction: Optional[str] = None
    fixed_message: Optional[str] = None
    shipping_time: Optional[int] = Field(default=None, ge=0)
    shipping_order: Optional[int] = None


class SentMessageIn(BaseModel):
    conversationFunnelStepMessageId: Optional[int] = None
    userSessionId: Optional[int] = None


class ConversationRegisterIn(BaseModel):
    user_session_id: Optional[int] = None
    account_id: Optional[int] = None
    conversation_funnel_step_id: Optional[int] = None
    summary: Optional[str] = None
    last_timestamptz: Optional[datetime] = None
