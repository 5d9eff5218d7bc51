"""Tests for configuration loading (env > YAML > defaults)."""

import pytest

from patch_engine.config import Config


_ENV_KEYS = [
    "HUNK_SLACK_LINES", "FUZZY_MATCH_THRESHOLD", "IGNORE_WHITESPACE",
    "SUPPORT_ELISION", "CONFLICT_RESOLUTION", "PRESERVE_GIT_HEADERS",
    "CONTEXT_LINES", "VALIDATE_SYNTAX", "RECORD_METRICS", "METRICS_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv("PATCH_ENGINE_" + key, raising=False)


class TestDefaults:
    def test_defaults(self):
        cfg = Config()

        assert cfg.HUNK_SLACK_LINES == 3
        assert cfg.FUZZY_MATCH_THRESHOLD == 1.0
        assert cfg.IGNORE_WHITESPACE is False
        assert cfg.SUPPORT_ELISION is False
        assert cfg.CONFLICT_RESOLUTION == "fail"
        assert cfg.PRESERVE_GIT_HEADERS is False
        assert cfg.CONTEXT_LINES == 3
        assert cfg.VALIDATE_SYNTAX is True
        assert cfg.RECORD_METRICS is False
        assert cfg.METRICS_DIR == ".patch_engine"


class TestYaml:
    def test_top_level_keys(self):
        cfg = Config({"hunk_slack_lines": 5, "conflict_resolution": "skip"})

        assert cfg.HUNK_SLACK_LINES == 5
        assert cfg.CONFLICT_RESOLUTION == "skip"

    def test_editing_section(self):
        cfg = Config({"editing": {"fuzzy_match_threshold": 0.8, "support_elision": True}})

        assert cfg.FUZZY_MATCH_THRESHOLD == 0.8
        assert cfg.SUPPORT_ELISION is True

    def test_load_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            "context_lines: 1\nrecord_metrics: true\n", encoding="utf-8",
        )

        cfg = Config.load(str(path))

        assert cfg.CONTEXT_LINES == 1
        assert cfg.RECORD_METRICS is True

    def test_load_missing_path_uses_defaults(self, tmp_path):
        cfg = Config.load(str(tmp_path / "missing.yaml"))

        assert cfg.HUNK_SLACK_LINES == 3

    def test_invalid_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("context_lines: [1, 2\n", encoding="utf-8")

        assert Config.load(str(path)).CONTEXT_LINES == 3

    def test_load_from_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".patch_engine.yaml").write_text(
            "preserve_git_headers: true\n", encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)

        assert Config.load().PRESERVE_GIT_HEADERS is True


class TestEnvOverride:
    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("PATCH_ENGINE_HUNK_SLACK_LINES", "7")
        monkeypatch.setenv("PATCH_ENGINE_IGNORE_WHITESPACE", "yes")

        cfg = Config({"hunk_slack_lines": 5, "ignore_whitespace": False})

        assert cfg.HUNK_SLACK_LINES == 7
        assert cfg.IGNORE_WHITESPACE is True

    def test_env_false_values(self, monkeypatch):
        monkeypatch.setenv("PATCH_ENGINE_VALIDATE_SYNTAX", "0")

        assert Config().VALIDATE_SYNTAX is False
