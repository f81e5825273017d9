from typing import Any, Iterable

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from callcontrol.core.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def upsert(
    db: Session,
    model,
    rows: list[dict[str, Any]],
    conflict_columns: Iterable[str],
    update_columns: Iterable[str],
) -> int:
    """Insert ``rows`` or update ``update_columns`` on conflict, in one statement.

    PostgreSQL and SQLite share the ``ON CONFLICT DO UPDATE`` construct, so the
    dialect-specific ``insert`` is picked from the bound engine.
    """
    if not rows:
        return 0
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"Upsert is not supported on {dialect}")
    statement = insert(model.__table__).values(rows)
    update_columns = list(update_columns)
    statement = statement.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={column: statement.excluded[column] for column in update_columns},
    )
    result = db.execute(statement)
    return result.rowcount
