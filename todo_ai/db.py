from __future__ import annotations
from sqlalchemy import (
    create_engine, MetaData, Table, Column,
    String, Boolean, BigInteger, Text, text, inspect,
)
from sqlalchemy.engine import Engine

from .config import DATABASE_URL

def get_engine(url: str = DATABASE_URL) -> Engine:
    return create_engine(url, future=True, pool_pre_ping=True)

engine = get_engine()
metadata = MetaData()

users = Table(
    "users", metadata,
    Column("id", String, primary_key=True),
    Column("email", String, nullable=False),
    Column("name", String, nullable=True),
    Column("password_hash", String, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

# Timestamps are epoch milliseconds (UTC instants).
todos = Table(
    "todos", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("title", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("created_at", BigInteger, nullable=False, index=True),
    Column("updated_at", BigInteger, nullable=False),
    Column("due_at", BigInteger, nullable=True),
    Column("priority", String, nullable=True),
    Column("category_json", Text, nullable=False, server_default="[]"),
    Column("completed", Boolean, nullable=False, server_default="false"),
    Column("completed_at", BigInteger, nullable=True),
)

def ensure_columns(table_name: str, required: dict[str, str], bind: Engine = engine) -> None:
    insp = inspect(bind)
    cols = {c["name"] for c in insp.get_columns(table_name)} if insp.has_table(table_name) else set()
    with bind.begin() as conn:
        for col, ddl in required.items():
            if col not in cols:
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {ddl}"))

def init_db(bind: Engine = engine) -> None:
    """Create tables if missing and add columns introduced after the first release.

    ``metadata.create_all()`` never alters an existing table, so columns added
    later are applied with ADD COLUMN.
    """
    metadata.create_all(bind)
    ensure_columns("todos", {
        "completed_at": "completed_at BIGINT",
        "updated_at": "updated_at BIGINT NOT NULL DEFAULT 0",
    }, bind)
    ensure_columns("users", {"name": "name TEXT"}, bind)
    with bind.begin() as conn:
        conn.execute(text("CREATE UNIQUE INDEX IF NOT EXISTS ux_users_email ON users(email)"))
