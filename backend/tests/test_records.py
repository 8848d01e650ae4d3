import sqlite3
from datetime import date, timedelta

import pytest
from sqlalchemy import delete, inspect
from sqlmodel import Session, select

from academy import errors, models, services
from academy.database import make_engine, create_db_and_tables, transaction

TODAY = date(2024, 5, 20)


def test_create_student_requires_name(session):
    svc = services.StudentService(session)
    with pytest.raises(errors.ValidationError):
        svc.create_student({"email": "nobody@example.com"})
    with pytest.raises(errors.ValidationError):
        svc.create_student({"name": "   "})


def test_create_student_rejects_unknown_fields(session):
    with pytest.raises(errors.ValidationError):
        services.StudentService(session).create_student({"name": "Alice", "belt": "black"})


def test_create_student_generates_id_and_timestamp(session):
    s = services.StudentService(session).create_student(
        {"name": "Alice", "amount": 120.5, "start_date": "2024-01-08", "package": "10 lessons"}
    )
    assert s.id is not None
    assert s.created_at is not None
    assert s.start_date == date(2024, 1, 8)
    assert s.status is None


def test_update_student_changes_only_supplied_fields(session):
    svc = services.StudentService(session)
    s = svc.create_student({"name": "Alice", "email": "a@example.com", "amount": 100})
    updated = svc.update_student(s.id, {"amount": 150, "status": "active"})
    assert updated.amount == 150
    assert updated.status == "active"
    assert updated.email == "a@example.com"


def test_update_missing_student_is_not_found(session):
    with pytest.raises(errors.NotFoundError):
        services.StudentService(session).update_student(999, {"name": "Ghost"})


def test_update_student_rejects_blank_name(session):
    svc = services.StudentService(session)
    s = svc.create_student({"name": "Alice"})
    with pytest.raises(errors.ValidationError):
        svc.update_student(s.id, {"name": ""})


def test_list_students_most_recent_first(session):
    svc = services.StudentService(session)
    first = svc.create_student({"name": "First"})
    second = svc.create_student({"name": "Second"})
    assert [s.id for s in svc.list_students()] == [second.id, first.id]


def test_create_payment_requires_amount_and_date(session):
    s = services.StudentService(session).create_student({"name": "Alice"})
    svc = services.PaymentService(session)
    with pytest.raises(errors.ValidationError):
        svc.create_payment({"student_id": s.id, "payment_date": TODAY})
    with pytest.raises(errors.ValidationError):
        svc.create_payment({"student_id": s.id, "amount": 10})
    with pytest.raises(errors.ValidationError):
        svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": "yesterday"})
    with pytest.raises(errors.ValidationError):
        svc.create_payment({"student_id": s.id, "amount": float("inf"), "payment_date": TODAY})
    with pytest.raises(errors.ValidationError):
        services.StudentService(session).update_student(s.id, {"amount": float("nan")})


def test_create_payment_defaults_to_pending_and_checks_status(session):
    s = services.StudentService(session).create_student({"name": "Alice"})
    svc = services.PaymentService(session)
    p = svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": "2024-01-01"})
    assert p.status == "pending"
    assert p.payment_date == date(2024, 1, 1)
    with pytest.raises(errors.ValidationError):
        svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY, "status": "refunded"})


def test_create_payment_for_unknown_student_is_foreign_key_error(session):
    with pytest.raises(errors.ForeignKeyError):
        services.PaymentService(session).create_payment({"student_id": 77, "amount": 10, "payment_date": TODAY})


def test_database_rejects_orphan_even_without_service_check(session):
    svc = services.PaymentService(session, enforce_foreign_keys=False)
    with pytest.raises(errors.ForeignKeyError):
        svc.create_payment({"student_id": 77, "amount": 10, "payment_date": TODAY})
    assert session.exec(select(models.Payment)).all() == []


def test_list_payments_left_joins_missing_student_when_integrity_is_off(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'loose.db'}", enforce_foreign_keys=False)
    create_db_and_tables(eng)
    with Session(eng) as session:
        svc = services.PaymentService(session, enforce_foreign_keys=False)
        svc.create_payment({"student_id": 5, "amount": 30, "payment_date": TODAY})
        rows = svc.list_payments()
    eng.dispose()
    assert len(rows) == 1
    assert rows[0]["student_id"] == 5
    assert rows[0]["student_name"] is None


def test_list_payments_adds_time_based_current_status(session):
    s = services.StudentService(session).create_student({"name": "Alice", "amount": 100})
    svc = services.PaymentService(session, derive_current_status=True)
    on_time = svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY - timedelta(days=30)})
    late = svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY - timedelta(days=31)})
    settled = svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY - timedelta(days=300),
                                  "status": "paid"})

    rows = {r["id"]: r for r in svc.list_payments(today=TODAY)}

    assert rows[on_time.id]["current_status"] == "pending"
    assert rows[late.id]["current_status"] == "overdue"
    assert rows[settled.id]["current_status"] == "paid"
    # derived on read only
    assert rows[late.id]["status"] == "pending"
    assert rows[late.id]["student_name"] == "Alice"


def test_list_payments_without_derived_status(session):
    s = services.StudentService(session).create_student({"name": "Alice"})
    svc = services.PaymentService(session, derive_current_status=False)
    svc.create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY})
    rows = svc.list_payments(student_id=s.id)
    assert len(rows) == 1
    assert "current_status" not in rows[0]


def test_storage_level_cascade_removes_payments(engine, session):
    s = services.StudentService(session).create_student({"name": "Alice"})
    services.PaymentService(session).create_payment({"student_id": s.id, "amount": 10, "payment_date": TODAY})
    with transaction(session):
        session.exec(delete(models.Student).where(models.Student.id == s.id))
    with Session(engine) as other:
        assert other.exec(select(models.Payment)).all() == []


def test_news_flags_are_stored_as_integers(session):
    svc = services.NewsService(session)
    post = svc.create_post({"title": "Open day", "is_breaking": True, "is_highlighted": False})
    assert post.is_breaking == 1
    assert post.is_highlighted == 0
    assert post.status == "draft"
    updated = svc.update_post(post.id, {"is_highlighted": True, "status": "published"})
    assert updated.is_highlighted == 1
    assert updated.is_breaking == 1


def test_news_requires_title_and_existing_id(session):
    svc = services.NewsService(session)
    with pytest.raises(errors.ValidationError):
        svc.create_post({"content": "no title"})
    with pytest.raises(errors.NotFoundError):
        svc.update_post(123, {"title": "x"})
    with pytest.raises(errors.NotFoundError):
        svc.delete_post(123)


def test_news_list_filters_and_orders(session):
    svc = services.NewsService(session)
    older = svc.create_post({"title": "Older", "status": "published", "display_date": date(2024, 1, 1)})
    newer = svc.create_post({"title": "Newer", "status": "published", "display_date": date(2024, 2, 1)})
    svc.create_post({"title": "Draft"})
    undated = svc.create_post({"title": "Undated", "status": "published"})
    assert [p.id for p in svc.list_posts("published")] == [newer.id, older.id, undated.id]
    assert len(svc.list_posts()) == 4
    svc.delete_post(older.id)
    assert [p.id for p in svc.list_posts("published")] == [newer.id, undated.id]


def test_status_columns_added_to_older_database(tmp_path):
    db_path = tmp_path / "legacy.db"
    conn = sqlite3.connect(db_path)
    conn.executescript(
        """
        CREATE TABLE students (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, email TEXT,
            phone TEXT, package TEXT, start_date TEXT, end_date TEXT, amount REAL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP);
        CREATE TABLE payments (id INTEGER PRIMARY KEY AUTOINCREMENT, student_id INTEGER, amount REAL NOT NULL,
            payment_date TEXT NOT NULL, payment_method TEXT, notes TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP, FOREIGN KEY (student_id) REFERENCES students (id));
        INSERT INTO students (name, amount) VALUES ('Legacy', 80);
        INSERT INTO payments (student_id, amount, payment_date) VALUES (1, 80, '2023-06-01');
        """
    )
    conn.close()

    eng = make_engine(f"sqlite:///{db_path}")
    create_db_and_tables(eng)
    columns = {c["name"] for c in inspect(eng).get_columns("payments")}
    assert "status" in columns
    with Session(eng) as session:
        rows = services.PaymentService(session, derive_current_status=True).list_payments(today=TODAY)
    eng.dispose()
    assert rows[0]["status"] == "pending"
    assert rows[0]["current_status"] == "overdue"
    assert rows[0]["student_name"] == "Legacy"
