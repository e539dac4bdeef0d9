from unittest.mock import patch

import pytest

from linkdex.config import (
    CACHE_MAX_AGE_SECONDS,
    DOCUMENT_URL,
    LINE_BINDING_TOLERANCE,
    PLACEHOLDER_SENTINEL,
    REDIRECT_PREFIXES,
    REFRESH_MAX_ATTEMPTS,
    SEARCH_RESULT_LIMIT,
)
from linkdex.config.loader import CONFIG_FILES, load_config, resolve_db_path


def test_catalog_defaults():
    assert DOCUMENT_URL.startswith("https://")
    assert CACHE_MAX_AGE_SECONDS > 0
    assert REFRESH_MAX_ATTEMPTS >= 1
    assert PLACEHOLDER_SENTINEL
    assert LINE_BINDING_TOLERANCE > 0
    assert isinstance(REDIRECT_PREFIXES, tuple)
    assert SEARCH_RESULT_LIMIT > 0


def test_load_config_copies_bundled_defaults(tmp_path):
    config_dir = tmp_path / "linkdex"
    with patch("linkdex.config.loader._get_config_dir", return_value=config_dir):
        config = load_config()

    for filename in CONFIG_FILES:
        assert (config_dir / filename).exists()
    assert config["catalog"]["cache_max_age_seconds"] == 3600
    assert config["extraction"]["line_binding_tolerance"] == 20
    assert config["search"]["result_limit"] == 5


def test_user_overrides_merge_over_defaults(tmp_path):
    config_dir = tmp_path / "linkdex"
    config_dir.mkdir()
    (config_dir / "catalog.toml").write_text(
        "[catalog]\ncache_max_age_seconds = 60\n", encoding="utf-8"
    )

    with patch("linkdex.config.loader._get_config_dir", return_value=config_dir):
        config = load_config()

    assert config["catalog"]["cache_max_age_seconds"] == 60
    assert config["catalog"]["refresh_max_attempts"] == 3
    assert config["extraction"]["title_marker_words"] == ["MEGA"]


def test_invalid_config_exits(tmp_path):
    """Ensure invalid TOML raises SystemExit."""
    config_dir = tmp_path / "linkdex"
    config_dir.mkdir()
    (config_dir / "general.toml").write_text("invalid_toml = [")

    with patch("linkdex.config.loader._get_config_dir", return_value=config_dir):
        with pytest.raises(SystemExit) as excinfo:
            load_config()
        assert excinfo.value.code == 1


def test_resolve_db_path_prefers_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LINKDEX_DB_PATH", str(tmp_path / "env.db"))
    assert resolve_db_path({"db_path": "~/other.db"}) == tmp_path / "env.db"


def test_resolve_db_path_from_config(monkeypatch):
    monkeypatch.delenv("LINKDEX_DB_PATH", raising=False)
    resolved = resolve_db_path({"db_path": "/var/tmp/linkdex.db"})
    assert str(resolved) == "/var/tmp/linkdex.db"


def test_resolve_db_path_default(monkeypatch, tmp_path):
    monkeypatch.delenv("LINKDEX_DB_PATH", raising=False)
    with patch("linkdex.config.loader._get_config_dir", return_value=tmp_path):
        assert resolve_db_path({}) == tmp_path / "catalog.db"
