"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Table names match the plain SQL schema in `migrations/0001_init.sql`.
"""

from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint
from datetime import datetime, date, timezone

PAYMENT_STATUSES = ("paid", "pending", "overdue")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(SQLModel, table=True):
    """An academy student and the total price of their package.

    Fields:
    - `amount`: total tuition for the package, compared against payments
    - `status`: free-form lifecycle label such as `pending` or `active`
    """
    __tablename__ = "students"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    email: Optional[str] = None
    phone: Optional[str] = None
    package: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    amount: Optional[float] = None
    status: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)


class Payment(SQLModel, table=True):
    """A payment recorded against a `Student`.

    Payments never outlive their student: the foreign key cascades on
    delete and `StudentLifecycleService.delete_student` removes them in
    the same transaction as the student row.
    """
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("status IN ('paid', 'pending', 'overdue')", name="ck_payments_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="students.id", ondelete="CASCADE", index=True, nullable=False)
    amount: float = Field(nullable=False)
    payment_date: date = Field(nullable=False)
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: str = Field(default="pending", nullable=False)
    created_at: datetime = Field(default_factory=_utcnow)


class NewsPost(SQLModel, table=True):
    """A news item shown on the academy site.

    The two flags are stored as 0/1 integers.
    """
    __tablename__ = "news"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(nullable=False)
    content: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    status: str = Field(default="draft")
    is_breaking: int = Field(default=0)
    is_highlighted: int = Field(default=0)
    display_date: Optional[date] = None
    created_at: datetime = Field(default_factory=_utcnow)
