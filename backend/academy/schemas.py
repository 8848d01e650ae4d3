"""Pydantic request schemas used by the API.

Fields are optional on purpose: required-field rules live in the
services so callers outside HTTP get the same `ValidationError`s.
Controllers pass `model_dump(exclude_unset=True)` to the services, which
lets updates touch only the fields a client actually sent.
"""

from datetime import date
from pydantic import BaseModel, ConfigDict, Field, FiniteFloat
from typing import Optional


class StudentIn(BaseModel):
    """Payload for creating or editing a student."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    package: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    amount: Optional[FiniteFloat] = None
    status: Optional[str] = None


class PaymentIn(BaseModel):
    """Payload for recording a payment."""
    student_id: Optional[int] = None
    amount: Optional[FiniteFloat] = None
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class PaymentStatusUpdateIn(BaseModel):
    """Body of `PUT /api/payments/status/{student_id}`."""
    amount: Optional[FiniteFloat] = None


class NewsIn(BaseModel):
    """Payload for creating or editing a news post.

    Accepts the camelCase keys used by the site frontend as well as the
    snake_case field names.
    """
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    status: Optional[str] = None
    is_breaking: Optional[bool] = Field(default=None, alias="isBreaking")
    is_highlighted: Optional[bool] = Field(default=None, alias="isHighlighted")
    display_date: Optional[date] = Field(default=None, alias="date")
