"""Unit tests for configuration loading."""

import stat

import pytest

from pybuildr.config import DEFAULT_API_URL, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "GITHUB_TOKEN",
        "GITHUB_API_URL",
        "PYBUILDR_STATE_DIR",
        "PYBUILDR_DEFAULT_USER",
    ):
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, temp_dir):
        config = Config(config_dir=temp_dir)

        assert config.token is None
        assert not config.is_configured()
        assert config.api_url == DEFAULT_API_URL
        assert config.state_dir == temp_dir / "state"
        assert config.get_default_user() == "default"

    def test_reads_config_file(self, temp_dir):
        (temp_dir / "config").write_text(
            "# comment\nGITHUB_TOKEN='file_token'\nGITHUB_API_URL=https://ghe.test/\n"
        )

        config = Config(config_dir=temp_dir)

        assert config.token == "file_token"
        assert config.api_url == "https://ghe.test"

    def test_environment_wins(self, temp_dir, monkeypatch):
        (temp_dir / "config").write_text("GITHUB_TOKEN=file_token\n")
        monkeypatch.setenv("GITHUB_TOKEN", "env_token")
        monkeypatch.setenv("PYBUILDR_STATE_DIR", str(temp_dir / "elsewhere"))
        monkeypatch.setenv("PYBUILDR_DEFAULT_USER", "alice")

        config = Config(config_dir=temp_dir)

        assert config.token == "env_token"
        assert config.state_dir == temp_dir / "elsewhere"
        assert config.get_default_user() == "alice"

    def test_save_token_keeps_other_keys(self, temp_dir):
        (temp_dir / "config").write_text("GITHUB_API_URL=https://ghe.test\n")
        config = Config(config_dir=temp_dir)

        config.save_token("new_token")

        text = config.get_config_path().read_text()
        assert "GITHUB_TOKEN=new_token" in text
        assert "GITHUB_API_URL=https://ghe.test" in text
        assert Config(config_dir=temp_dir).token == "new_token"
        mode = stat.S_IMODE(config.get_config_path().stat().st_mode)
        assert mode == 0o600
