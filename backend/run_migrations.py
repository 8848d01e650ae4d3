"""Simple migration runner for SQLite using the SQL files in migrations/"""
from pathlib import Path
import os
import sqlite3

BASE = Path(__file__).parent
DB_PATH = Path(os.getenv("DATABASE_PATH", str(BASE / "academy.db")))
MIGRATIONS_DIR = BASE / "migrations"


def run(db_path: Path = DB_PATH, migrations_dir: Path = MIGRATIONS_DIR):
    """Execute SQL migration files against the academy SQLite database.

    The function applies every `migrations/*.sql` file in lexical
    order. The scripts are idempotent, so re-running against an
    existing database is safe.
    """
    print("Using database:", db_path)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for m in sorted(Path(migrations_dir).glob("*.sql")):
            print("Applying:", m.name)
            cur.executescript(m.read_text(encoding="utf-8"))
        conn.commit()
    finally:
        conn.close()
    print("Migrations applied.")


if __name__ == '__main__':
    run()
