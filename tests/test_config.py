import pytest

from mongoshell import config


@pytest.fixture(autouse=True)
def no_token_file(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "TOKEN_FILE", tmp_path / ".token")


def test_defaults_without_settings_file(tmp_path):
    settings = config.load_settings(tmp_path / "missing.json")
    assert settings.token is None
    assert settings.server_selection_timeout_ms == 3000
    assert settings.max_pool_size == 10


def test_settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text('{"token": " abc ", "socket_timeout_ms": 5000, "log_level": "DEBUG"}', encoding="utf-8")
    settings = config.load_settings(path)
    assert settings.token == "abc"
    assert settings.socket_timeout_ms == 5000
    assert settings.log_level == "DEBUG"


def test_token_file_fallback(tmp_path):
    (tmp_path / ".token").write_text("from-file\n", encoding="utf-8")
    assert config.load_settings(tmp_path / "missing.json").token == "from-file"


def test_empty_token_file(tmp_path):
    (tmp_path / ".token").write_text("  \n", encoding="utf-8")
    with pytest.raises(RuntimeError, match="empty"):
        config.load_settings(tmp_path / "missing.json")


def test_malformed_settings(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(RuntimeError, match="Failed to parse"):
        config.load_settings(path)
