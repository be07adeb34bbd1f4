"""
Database wiring.

Environment (a .env file is honoured):
    DATABASE_URL  SQLAlchemy URL, default sqlite:///./matchday.db
    SQL_ECHO      "true", "1" or "yes" logs every statement
"""
import os
from pathlib import Path
from typing import Any, Generator, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./matchday.db")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


def _sqlite_file(url: str) -> Optional[Path]:
    """Path of a file-backed SQLite database; None for in-memory or other backends."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return None
    return Path(parsed.database)


def make_engine(url: str, **kwargs: Any) -> Engine:
    """
    Engine for `url`. SQLite connections may be used from any thread, and a
    file database gets its parent directory created.
    """
    kwargs.setdefault("echo", _env_flag("SQL_ECHO"))
    if make_url(url).get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        db_file = _sqlite_file(url)
        if db_file is not None:
            db_file.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, **kwargs)


engine: Engine = make_engine(DATABASE_URL)


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session (FastAPI dependency)"""
    with Session(engine) as session:
        yield session


def init_db(bind: Optional[Engine] = None) -> None:
    """Create every table that does not exist yet"""
    # Models register their tables on SQLModel.metadata at import time
    import matchday.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def reset_db(bind: Optional[Engine] = None) -> None:
    """Drop every table"""
    import matchday.models  # noqa: F401

    SQLModel.metadata.drop_all(bind or engine)
