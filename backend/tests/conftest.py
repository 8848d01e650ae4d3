from pathlib import Path
import os
import tempfile
import pytest
from sqlmodel import Session

# Point the app at a throwaway database before anything imports it.
_TEST_DB = Path(tempfile.gettempdir()) / f"academy_test_{os.getpid()}.db"
if _TEST_DB.exists():
    _TEST_DB.unlink()
os.environ["DATABASE_PATH"] = str(_TEST_DB)

from academy.database import make_engine, create_db_and_tables  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    """A fresh, empty database with foreign keys enforced."""
    eng = make_engine(f"sqlite:///{tmp_path / 'academy.db'}")
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s
