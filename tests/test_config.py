"""
Tests for configuration loading and validation.
"""

import pytest
import yaml


def test_missing_config_file(tmp_path):
    from hirebox.config import Config

    with pytest.raises(FileNotFoundError, match="config.example.yaml"):
        Config(config_path=tmp_path / "config.yaml")


def test_loads_yaml_file(tmp_path):
    from hirebox.config import Config

    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "ai": {"model": "claude-test", "max_tokens": 200},
                "ingestion": {"timeout_seconds": 30, "max_messages": 10},
            }
        )
    )

    config = Config(config_path=path)

    assert config.ai_model == "claude-test"
    assert config.ai_max_tokens == 200
    assert config.fetch_timeout == 30
    assert config.max_messages == 10
    assert config.max_retries == 3


def test_empty_file_uses_defaults(tmp_path):
    from hirebox.config import Config

    path = tmp_path / "config.yaml"
    path.write_text("")

    config = Config(config_path=path)

    assert config.ai_provider == "claude"
    assert config.fetch_timeout == 120
    assert config.operation_log_dir is None


def test_unknown_ai_provider_is_rejected():
    from hirebox.config import Config

    with pytest.raises(ValueError, match="Unknown ai.provider"):
        Config(data={"ai": {"provider": "gemini"}})


@pytest.mark.parametrize(
    "ingestion",
    [
        {"timeout_seconds": -1},
        {"timeout_seconds": 0},
        {"timeout_seconds": True},
        {"timeout_seconds": "soon"},
        {"max_retries": 1.5},
        {"max_messages": -10},
    ],
)
def test_invalid_ingestion_settings(ingestion):
    from hirebox.config import Config

    with pytest.raises(ValueError, match="ingestion"):
        Config(data={"ingestion": ingestion})


def test_null_fetch_timeout_means_unbounded(tmp_path):
    """An explicit null disables the cycle budget instead of restoring the default."""
    from hirebox.config import Config

    config_file = tmp_path / "config.yaml"
    config_file.write_text("ingestion:\n  timeout_seconds: null\n  max_messages: 5\n")

    config = Config(config_file)

    assert config.fetch_timeout is None
    assert config.max_messages == 5
    assert Config(data={"ingestion": {"max_messages": 5}}).fetch_timeout == 120


def test_section_must_be_mapping():
    from hirebox.config import Config

    with pytest.raises(ValueError, match="'oauth' must be a mapping"):
        Config(data={"oauth": ["gmail"]})


def test_oauth_settings_env_overrides(monkeypatch):
    """Environment variables win over the YAML values."""
    from hirebox.config import Config

    monkeypatch.setenv("GMAIL_CLIENT_SECRET", "from-env")
    monkeypatch.delenv("GMAIL_CLIENT_ID", raising=False)
    config = Config(
        data={"oauth": {"gmail": {"client_id": "yaml-id", "client_secret": "yaml-secret"}}}
    )

    settings = config.oauth_settings("gmail")

    assert settings["client_id"] == "yaml-id"
    assert settings["client_secret"] == "from-env"


def test_microsoft_authority_default(monkeypatch):
    from hirebox.config import DEFAULT_MICROSOFT_AUTHORITY, Config

    monkeypatch.delenv("MICROSOFT_AUTHORITY", raising=False)

    assert Config(data={}).oauth_settings("microsoft")["authority"] == DEFAULT_MICROSOFT_AUTHORITY


def test_database_path_from_environment(monkeypatch, tmp_path):
    from hirebox.config import Config

    monkeypatch.setenv("HIREBOX_DB_PATH", str(tmp_path / "env.db"))

    assert Config(data={"database": {"path": "yaml.db"}}).database_path == tmp_path / "env.db"


def test_dotted_get():
    from hirebox.config import Config

    config = Config(data={"logging": {"level": "DEBUG"}})

    assert config.get("logging.level") == "DEBUG"
    assert config.get("logging.missing", "fallback") == "fallback"
    assert config.get("logging.level.deeper") is None
