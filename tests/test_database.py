"""Engine construction from DATABASE_URL-style settings."""
from matchday.database import _sqlite_file, make_engine


def test_sqlite_file_path():
    assert str(_sqlite_file("sqlite:///./data/matchday.db")).endswith("matchday.db")
    assert _sqlite_file("sqlite:///:memory:") is None
    assert _sqlite_file("sqlite://") is None
    assert _sqlite_file("postgresql://user:pw@localhost/matchday") is None


def test_file_database_gets_its_directory(tmp_path):
    target = tmp_path / "nested" / "matchday.db"
    engine = make_engine(f"sqlite:///{target}")
    assert target.parent.is_dir()
    engine.dispose()


def test_sql_echo_flag(monkeypatch):
    monkeypatch.setenv("SQL_ECHO", "yes")
    assert make_engine("sqlite:///:memory:").echo is True
    monkeypatch.setenv("SQL_ECHO", "off")
    assert make_engine("sqlite:///:memory:").echo is False
