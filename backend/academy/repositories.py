"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table (students,
payments, news). Repositories return SQLModel objects and `flush()` so
generated ids are available, but never commit: the calling service
decides the transaction boundary with `database.transaction`.
"""

from typing import List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import delete
from . import models


class StudentRepository:
    """CRUD operations for `Student` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, student: models.Student) -> models.Student:
        """Stage a new student and return it with its generated id."""
        self.session.add(student)
        self.session.flush()
        self.session.refresh(student)
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        """Get a `Student` by primary key."""
        return self.session.get(models.Student, student_id)

    def exists(self, student_id: int) -> bool:
        stmt = select(models.Student.id).where(models.Student.id == student_id)
        return self.session.exec(stmt).first() is not None

    def list_recent_first(self) -> List[models.Student]:
        """Return all students, most recently created first."""
        stmt = select(models.Student).order_by(models.Student.created_at.desc(), models.Student.id.desc())
        return self.session.exec(stmt).all()

    def update(self, student: models.Student, fields: dict) -> models.Student:
        """Apply `fields` to `student` and flush the change."""
        for key, value in fields.items():
            setattr(student, key, value)
        self.session.add(student)
        self.session.flush()
        self.session.refresh(student)
        return student

    def delete(self, student_id: int) -> int:
        """Delete the student row and return the number of rows removed."""
        result = self.session.exec(delete(models.Student).where(models.Student.id == student_id))
        return result.rowcount


class PaymentRepository:
    """Queries and writes for `Payment` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, payment: models.Payment) -> models.Payment:
        self.session.add(payment)
        self.session.flush()
        self.session.refresh(payment)
        return payment

    def list_for_student(self, student_id: int) -> List[models.Payment]:
        """List the student's payments in the order they were recorded."""
        stmt = select(models.Payment).where(models.Payment.student_id == student_id).order_by(models.Payment.id)
        return self.session.exec(stmt).all()

    def list_with_student_name(self, student_id: Optional[int] = None) -> List[Tuple[models.Payment, Optional[str]]]:
        """Return `(payment, student_name)` pairs.

        The student is left-joined, so a payment whose student row is
        missing still appears with a `None` name.
        """
        stmt = select(models.Payment, models.Student.name).outerjoin(
            models.Student, models.Payment.student_id == models.Student.id
        )
        if student_id is not None:
            stmt = stmt.where(models.Payment.student_id == student_id)
        stmt = stmt.order_by(models.Payment.id)
        return self.session.exec(stmt).all()

    def set_status(self, payment: models.Payment, status: str) -> models.Payment:
        payment.status = status
        self.session.add(payment)
        self.session.flush()
        return payment

    def delete_for_student(self, student_id: int) -> int:
        """Delete every payment owned by `student_id`; return the count."""
        result = self.session.exec(delete(models.Payment).where(models.Payment.student_id == student_id))
        return result.rowcount


class NewsRepository:
    """CRUD operations for `NewsPost` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, post: models.NewsPost) -> models.NewsPost:
        self.session.add(post)
        self.session.flush()
        self.session.refresh(post)
        return post

    def get(self, post_id: int) -> Optional[models.NewsPost]:
        return self.session.get(models.NewsPost, post_id)

    def list_latest_first(self, status: Optional[str] = None) -> List[models.NewsPost]:
        """Return posts by display date then creation time, newest first.

        Posts without a display date sort last.
        """
        stmt = select(models.NewsPost)
        if status is not None:
            stmt = stmt.where(models.NewsPost.status == status)
        stmt = stmt.order_by(
            models.NewsPost.display_date.is_(None),
            models.NewsPost.display_date.desc(),
            models.NewsPost.created_at.desc(),
            models.NewsPost.id.desc(),
        )
        return self.session.exec(stmt).all()

    def update(self, post: models.NewsPost, fields: dict) -> models.NewsPost:
        for key, value in fields.items():
            setattr(post, key, value)
        self.session.add(post)
        self.session.flush()
        self.session.refresh(post)
        return post

    def delete(self, post: models.NewsPost) -> None:
        self.session.delete(post)
        self.session.flush()
