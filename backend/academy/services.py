"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the payment status helpers. Services validate input, raise the
typed errors from `academy.errors`, and wrap every write in
`database.transaction` so each call commits or rolls back as a unit.

`StudentLifecycleService` owns the two multi-row workflows: deleting a
student together with its payments, and reconciling a student's
payment statuses against a newly reported amount.
"""

import logging
import math
from datetime import date
from typing import Iterable, List, Optional

from sqlmodel import Session

from . import errors, models, repositories
from .config import settings
from .database import transaction
from .utils import payment_status

logger = logging.getLogger("academy.services")

STUDENT_FIELDS = ("name", "email", "phone", "package", "start_date", "end_date", "amount", "status")
PAYMENT_FIELDS = ("student_id", "amount", "payment_date", "payment_method", "notes", "status")
NEWS_FIELDS = ("title", "content", "category", "image", "status", "is_breaking", "is_highlighted", "display_date")

SYSTEM_PAYMENT_METHOD = "System"


def _check_fields(fields: dict, allowed: Iterable[str]) -> dict:
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise errors.ValidationError(f"unknown field(s): {', '.join(unknown)}")
    return dict(fields)


def _require(fields: dict, *names: str) -> None:
    for name in names:
        value = fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise errors.ValidationError(f"{name} is required")


def _check_amount(fields: dict) -> None:
    value = fields.get("amount")
    if isinstance(value, float) and not math.isfinite(value):
        raise errors.ValidationError("amount must be a finite number")


def _as_date(value, field: str) -> Optional[date]:
    """Accept `date` objects or ISO `YYYY-MM-DD` strings."""
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise errors.ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)") from None


def payment_out(payment: models.Payment, student_name: Optional[str] = None,
                today: Optional[date] = None, derive_current_status: bool = False) -> dict:
    """Serialize a payment, optionally adding the read-time `current_status`."""
    out = payment.model_dump()
    out["student_name"] = student_name
    if derive_current_status:
        out["current_status"] = payment_status.derive_current_status(
            payment.status, payment.payment_date, today or date.today()
        )
    return out


class StudentService:
    """Create, read and edit students."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)

    def create_student(self, fields: dict) -> models.Student:
        """Persist a new student; `name` is the only required field."""
        data = _check_fields(fields, STUDENT_FIELDS)
        _require(data, "name")
        _check_amount(data)
        for key in ("start_date", "end_date"):
            data[key] = _as_date(data.get(key), key)
        with transaction(self.session):
            student = self.student_repo.create(models.Student(**data))
        self.session.refresh(student)
        return student

    def get_student(self, student_id: int) -> models.Student:
        student = self.student_repo.get(student_id)
        if student is None:
            raise errors.NotFoundError(f"student {student_id} not found")
        return student

    def update_student(self, student_id: int, fields: dict) -> models.Student:
        """Apply the supplied fields to an existing student.

        Fields absent from `fields` are left unchanged. An explicit blank
        `name` is rejected.
        """
        data = _check_fields(fields, STUDENT_FIELDS)
        if "name" in data:
            _require(data, "name")
        _check_amount(data)
        for key in ("start_date", "end_date"):
            if key in data:
                data[key] = _as_date(data[key], key)
        with transaction(self.session):
            student = self.get_student(student_id)
            student = self.student_repo.update(student, data)
        self.session.refresh(student)
        return student

    def list_students(self) -> List[models.Student]:
        return self.student_repo.list_recent_first()


class PaymentService:
    """Record payments and list them with their student's name."""
    def __init__(self, session: Session, enforce_foreign_keys: Optional[bool] = None,
                 derive_current_status: Optional[bool] = None):
        self.session = session
        self.payment_repo = repositories.PaymentRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.enforce_foreign_keys = settings.ENFORCE_FOREIGN_KEYS if enforce_foreign_keys is None else enforce_foreign_keys
        self.derive_current_status = settings.DERIVE_CURRENT_STATUS if derive_current_status is None else derive_current_status

    def create_payment(self, fields: dict) -> models.Payment:
        """Persist a payment for an existing student.

        Raises `ValidationError` for missing `student_id`, `amount` or
        `payment_date` or an unknown status, and `ForeignKeyError` when
        the student does not exist and integrity checks are on.
        """
        data = _check_fields(fields, PAYMENT_FIELDS)
        _require(data, "student_id", "amount", "payment_date")
        _check_amount(data)
        data["payment_date"] = _as_date(data["payment_date"], "payment_date")
        if data.get("status") is None:
            data["status"] = payment_status.PENDING
        elif data["status"] not in models.PAYMENT_STATUSES:
            raise errors.ValidationError(f"status must be one of {', '.join(models.PAYMENT_STATUSES)}")
        with transaction(self.session):
            if self.enforce_foreign_keys and not self.student_repo.exists(data["student_id"]):
                raise errors.ForeignKeyError(f"student {data['student_id']} does not exist")
            payment = self.payment_repo.create(models.Payment(**data))
        self.session.refresh(payment)
        return payment

    def list_payments(self, student_id: Optional[int] = None, today: Optional[date] = None) -> List[dict]:
        """Return payments joined with the owning student's name."""
        today = today or date.today()
        rows = self.payment_repo.list_with_student_name(student_id)
        return [payment_out(p, name, today, self.derive_current_status) for p, name in rows]


class StudentLifecycleService:
    """Multi-row student workflows that must commit or roll back as one."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.payment_repo = repositories.PaymentRepository(session)

    def delete_student(self, student_id: int) -> dict:
        """Delete a student and every payment that belongs to it.

        The payments and the student row go in one transaction. If the
        student row is already gone when the delete runs, the payment
        deletion is rolled back and `ConflictError` is raised.
        """
        if self.student_repo.get(student_id) is None:
            raise errors.NotFoundError(f"student {student_id} not found")
        with transaction(self.session):
            deleted_payments = self.payment_repo.delete_for_student(student_id)
            if self.student_repo.delete(student_id) == 0:
                raise errors.ConflictError(f"student {student_id} was removed by another request")
        logger.info("deleted student %s with %s payment(s)", student_id, deleted_payments)
        return {
            "success": True,
            "message": "Student and related payments deleted successfully",
            "deletedPayments": deleted_payments,
        }

    def reconcile_payment_status(self, student_id: int, new_amount: Optional[float],
                                 today: Optional[date] = None) -> dict:
        """Bring a student's payment statuses in line with `new_amount`.

        With no payments on record, a single `System` payment for
        `new_amount` dated `today` is created; it is `paid` when the
        amount equals the student's total. Otherwise every existing
        payment is re-evaluated with `payment_status.reconciled_status`.
        """
        if new_amount is None:
            raise errors.ValidationError("amount is required")
        _check_amount({"amount": new_amount})
        today = today or date.today()
        with transaction(self.session):
            student = self.student_repo.get(student_id)
            if student is None:
                raise errors.NotFoundError(f"student {student_id} not found")
            payments = self.payment_repo.list_for_student(student_id)
            paid_so_far = payment_status.total_paid(p.amount for p in payments)
            if not payments:
                self.payment_repo.create(models.Payment(
                    student_id=student_id,
                    amount=new_amount,
                    payment_date=today,
                    payment_method=SYSTEM_PAYMENT_METHOD,
                    status=payment_status.synthetic_status(new_amount, student.amount),
                ))
            else:
                for p in payments:
                    status = payment_status.reconciled_status(new_amount, student.amount, p.payment_date, today)
                    self.payment_repo.set_status(p, status)
        logger.info("reconciled payment status for student %s", student_id)
        payments = self.payment_repo.list_for_student(student_id)
        return {
            "success": True,
            "message": "Payment status updated successfully",
            "totalPaid": paid_so_far,
            "payments": [payment_out(p, student.name, today, settings.DERIVE_CURRENT_STATUS) for p in payments],
        }


class NewsService:
    """Plain CRUD over news posts; flags are stored as 0/1."""
    def __init__(self, session: Session):
        self.session = session
        self.news_repo = repositories.NewsRepository(session)

    @staticmethod
    def _normalize(data: dict) -> dict:
        for flag in ("is_breaking", "is_highlighted"):
            if flag in data:
                data[flag] = 1 if data[flag] else 0
        if "display_date" in data:
            data["display_date"] = _as_date(data["display_date"], "date")
        if "status" in data and data["status"] is None:
            del data["status"]
        return data

    def create_post(self, fields: dict) -> models.NewsPost:
        data = self._normalize(_check_fields(fields, NEWS_FIELDS))
        _require(data, "title")
        with transaction(self.session):
            post = self.news_repo.create(models.NewsPost(**data))
        self.session.refresh(post)
        return post

    def get_post(self, post_id: int) -> models.NewsPost:
        post = self.news_repo.get(post_id)
        if post is None:
            raise errors.NotFoundError(f"news post {post_id} not found")
        return post

    def update_post(self, post_id: int, fields: dict) -> models.NewsPost:
        data = self._normalize(_check_fields(fields, NEWS_FIELDS))
        if "title" in data:
            _require(data, "title")
        with transaction(self.session):
            post = self.news_repo.update(self.get_post(post_id), data)
        self.session.refresh(post)
        return post

    def delete_post(self, post_id: int) -> None:
        with transaction(self.session):
            self.news_repo.delete(self.get_post(post_id))

    def list_posts(self, status: Optional[str] = None) -> List[models.NewsPost]:
        return self.news_repo.list_latest_first(status)
