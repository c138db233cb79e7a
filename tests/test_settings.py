import os

import pytest

from git_tag_action.platforms.base import PlatformKind
from git_tag_action.settings import ConfigurationError, load_settings, resolve_token


@pytest.fixture
def inputs(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Clean INPUT_* environment; returns a setter for individual inputs."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("INPUT_"):
            monkeypatch.delenv(name)

    def set_input(name: str, value: str) -> None:
        monkeypatch.setenv(f"INPUT_{name.upper()}", value)

    return set_input


class TestLoadSettings:
    def test_defaults(self, inputs):
        inputs("tag_name", "v1.0.0")

        settings = load_settings()

        assert settings.tag_name == "v1.0.0"
        assert settings.tag_message is None
        assert settings.repo_type is PlatformKind.AUTO
        assert settings.update_existing is False
        assert settings.push_tag is True
        assert settings.force is False

    def test_booleans_and_trimming(self, inputs):
        inputs("tag_name", "  v2  ")
        inputs("tag_message", "  Release notes\n")
        inputs("update_existing", "true")
        inputs("push_tag", "false")
        inputs("repo_type", "GitHub")

        settings = load_settings()

        assert settings.tag_name == "v2"
        assert settings.tag_message == "Release notes"
        assert settings.update_existing is True
        assert settings.push_tag is False
        assert settings.repo_type is PlatformKind.GITHUB

    def test_empty_inputs_are_ignored(self, inputs):
        inputs("tag_name", "v1")
        inputs("tag_message", "")
        inputs("force", "")

        settings = load_settings()

        assert settings.tag_message is None
        assert settings.force is False

    def test_blank_message_means_lightweight(self, inputs):
        inputs("tag_name", "v1")
        inputs("tag_message", "   \n  ")

        assert load_settings().tag_message is None

    def test_tag_name_required(self, inputs):
        with pytest.raises(ConfigurationError, match="^tag_name is required$"):
            load_settings()

    def test_tag_name_without_slash(self, inputs):
        inputs("tag_name", "release/v1")

        with pytest.raises(ConfigurationError, match="must not contain '/'"):
            load_settings()

    def test_invalid_repo_type(self, inputs):
        inputs("tag_name", "v1")
        inputs("repo_type", "gitlab")

        with pytest.raises(ConfigurationError, match="^Invalid repo_type: gitlab. Must be one of: github, gitea"):
            load_settings()

    def test_signing_requires_message(self, inputs):
        inputs("tag_name", "v1")
        inputs("gpg_sign", "true")

        with pytest.raises(ConfigurationError, match="tag_message is required when gpg_sign is enabled"):
            load_settings()

    def test_blank_gpg_key_id(self, inputs):
        with pytest.raises(ConfigurationError, match="gpg_key_id must not be blank"):
            load_settings(tag_name="v1", gpg_key_id="   ")

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.com", "https://"])
    def test_base_url_must_be_http(self, inputs, url):
        inputs("tag_name", "v1")
        inputs("base_url", url)

        with pytest.raises(ConfigurationError, match="base_url must be a valid http"):
            load_settings()

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestResolveToken:
    ENV = {"GITHUB_TOKEN": "gh", "GITEA_TOKEN": "gt", "BITBUCKET_TOKEN": "bb"}

    def test_explicit_wins(self):
        assert resolve_token("mine", PlatformKind.GITEA, self.ENV) == "mine"

    @pytest.mark.parametrize(
        "platform,expected",
        [
            (PlatformKind.GITHUB, "gh"),
            (PlatformKind.GITEA, "gt"),
            (PlatformKind.BITBUCKET, "bb"),
            (PlatformKind.GENERIC, "gh"),
            (PlatformKind.AUTO, "gh"),
        ],
    )
    def test_platform_priority(self, platform, expected):
        assert resolve_token(None, platform, self.ENV) == expected

    def test_gitea_falls_back_to_github_token(self):
        assert resolve_token(None, PlatformKind.GITEA, {"GITHUB_TOKEN": "gh"}) == "gh"

    def test_bitbucket_has_no_fallback(self):
        assert resolve_token(None, PlatformKind.BITBUCKET, {"GITHUB_TOKEN": "gh"}) is None

    def test_generic_tries_every_variable(self):
        assert resolve_token(None, PlatformKind.GENERIC, {"BITBUCKET_TOKEN": "bb"}) == "bb"
