"""Tests for base dir resolution and fixture name normalization."""

from pathlib import Path

from chambr import paths


# ── Base dir ─────────────────────────────────────────────


def test_explicit_base_dir_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("CHAMBR_HOME", str(tmp_path / "from-env"))
    assert paths.resolve_base_dir(tmp_path / "explicit") == (tmp_path / "explicit").resolve()


def test_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("CHAMBR_HOME", f"  {tmp_path / 'from-env'}  ")
    assert paths.resolve_base_dir() == (tmp_path / "from-env").resolve()


def test_blank_env_falls_back_to_home(monkeypatch):
    monkeypatch.setenv("CHAMBR_HOME", "   ")
    assert paths.resolve_base_dir() == Path.home() / ".chambr"


def test_default_is_home_dir():
    assert paths.resolve_base_dir() == Path.home() / ".chambr"


def test_derived_paths(tmp_path):
    root = tmp_path.resolve()
    assert paths.config_path(tmp_path) == root / "config.json"
    assert paths.chamber_path("abc", tmp_path) == root / "chambers" / "abc.json"
    assert paths.fixture_path("demo run", tmp_path) == root / "fixtures" / "demo-run.json"


# ── Fixture names ────────────────────────────────────────


def test_normalize_fixture_name_passthrough():
    assert paths.normalize_fixture_name("smoke_test-1.v2") == "smoke_test-1.v2"


def test_normalize_fixture_name_collapses_runs():
    assert paths.normalize_fixture_name("my scenario//one") == "my-scenario-one"


def test_normalize_fixture_name_strips_hyphens():
    assert paths.normalize_fixture_name("  --weird name!!  ") == "weird-name"


def test_normalize_fixture_name_empty():
    assert paths.normalize_fixture_name("") == "default"
    assert paths.normalize_fixture_name("   ") == "default"
    assert paths.normalize_fixture_name("!!!") == "default"
    assert paths.normalize_fixture_name(None) == "default"
