from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserSessionCreate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    account_id: Optional[int] = None
    product_id: Optional[int] = None
    contact_id: Optional[int] = None
    message_time: Optional[int] = None


class UserSessionUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    phone: Optional[str] = None
    product_id: Optional[int] = None
    contact_id: Optional[int] = None
    conversation_funnel_step_id: Optional[int] = None
    inbox_id: Optional[int] = None
    conversation_id: Optional[int] = None
    message_time: Optional[int] = None
    last_access: Optional[datetime] = None


class ContactCreate(BaseModel):
    name: Optional[str] = None
    account_id: Optional[int] = None
    phone: Optional[str] = None
    contact_data: Optional[dict[str, Any]] = None
    campaign_id: Optional[str] = None
    external_code: Optional[str] = None
    external_status: Optional[str] = None


class ContactExternalUpdate(BaseModel):
    external_code: Optional[str] = None
    externalCode: Optional[str] = None
    status: Optional[str] = None
    finalLink: Optional[str] = None
    final_link: Optional[str] = None

    @property
    def code(self) -> Optional[str]:
        return self.external_code or self.externalCode

    @property
    def link(self) -> Optional[str]:
        return self.finalLink or self.final_link


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    social_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    domain: Optional[str] = None
    conversation_funnel_id: Optional[int] = None


class ParameterUpsert(BaseModel):
    value: Any = None
    short_description: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[str] = None


class OnboardingRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    productId: Optional[int] = None
    accountName: Optional[str] = None
    accountEmail: Optional[EmailStr] = None
    accountPhone: Optional[str] = None
    document: Optional[str] = None
    domain: Optional[str] = None
    user_id: Optional[int] = None
    metadata: Any = None
    parameters: dict[str, Any] = Field(default_factory=dict)
