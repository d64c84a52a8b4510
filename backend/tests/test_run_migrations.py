from __future__ import annotations

import types

import pytest
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from scripts import run_migrations as runner


def _placeholder_config() -> Config:
    config = Config()
    config.set_main_option("sqlalchemy.url", runner.URL_PLACEHOLDER.replace("%", "%%"))
    config.set_main_option("script_location", str(runner.BACKEND_ROOT / "alembic"))
    return config


def test_resolve_database_url_prefers_env(monkeypatch) -> None:
    monkeypatch.setenv("STANDING_DATABASE_URL", "sqlite://")
    config = _placeholder_config()

    assert runner.resolve_database_url(config) == "sqlite://"
    assert config.get_main_option("sqlalchemy.url") == "sqlite://"


def test_resolve_database_url_requires_env(monkeypatch) -> None:
    monkeypatch.delenv("STANDING_DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        runner.resolve_database_url(_placeholder_config())


def test_explicit_url_wins_over_env(monkeypatch) -> None:
    monkeypatch.setenv("STANDING_DATABASE_URL", "sqlite://")
    config = Config()
    config.set_main_option("sqlalchemy.url", "sqlite:///explicit.db")

    assert runner.resolve_database_url(config) == "sqlite:///explicit.db"


def test_wait_for_database_succeeds_with_sqlite(tmp_path) -> None:
    runner.wait_for_database(f"sqlite:///{tmp_path / 'ready.sqlite'}", timeout=2, poll_interval=0.1)


def test_wait_for_database_times_out(monkeypatch) -> None:
    class DummyEngine:
        def connect(self) -> types.SimpleNamespace:
            raise runner.OperationalError("SELECT 1", {}, Exception("connection refused"))

        def dispose(self) -> None:
            pass

    monkeypatch.setattr(runner, "create_engine", lambda *_, **__: DummyEngine())
    with pytest.raises(RuntimeError):
        runner.wait_for_database("postgresql://example", timeout=0, poll_interval=0)


def test_run_migrations_invokes_upgrade(monkeypatch) -> None:
    monkeypatch.setenv("STANDING_DATABASE_URL", "sqlite://")
    recorded: dict[str, object] = {}

    def fake_wait(url: str, *, timeout: int, poll_interval: float) -> None:
        recorded["wait"] = (url, timeout, poll_interval)

    def fake_upgrade(cfg: Config, revision: str) -> None:
        recorded["revision"] = revision
        recorded["script_location"] = cfg.get_main_option("script_location")

    monkeypatch.setattr(runner, "wait_for_database", fake_wait)
    monkeypatch.setattr(runner.command, "upgrade", fake_upgrade)

    runner.run_migrations("head", timeout=5, poll_interval=0.1, config=_placeholder_config())

    assert recorded["revision"] == "head"
    assert recorded["wait"] == ("sqlite://", 5, 0.1)
    assert str(recorded["script_location"]).endswith("alembic")


def test_upgrade_creates_standing_tables(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.sqlite'}"
    monkeypatch.setenv("STANDING_DATABASE_URL", url)

    runner.run_migrations("head", timeout=2, poll_interval=0.1, config=_placeholder_config())

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"students", "student_sync_metadata", "student_academic_records"} <= tables


def test_main_reports_failure(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("STANDING_DATABASE_URL", raising=False)
    ini = tmp_path / "alembic.ini"
    ini.write_text("[alembic]\nscript_location = alembic\nsqlalchemy.url = %%(STANDING_DATABASE_URL)s\n")

    assert runner.main(["--config", str(ini), "--timeout", "0"]) == 1
