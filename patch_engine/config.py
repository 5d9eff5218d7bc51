"""
Configuration — loads settings from .patch_engine.yaml, environment variables,
and built-in defaults (in that priority order: env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "hunk_slack_lines": 3,
    "fuzzy_match_threshold": 1.0,
    "ignore_whitespace": False,
    "support_elision": False,
    "conflict_resolution": "fail",
    "preserve_git_headers": False,
    "context_lines": 3,
    "validate_syntax": True,
    "record_metrics": False,
    "metrics_dir": ".patch_engine",
}

# Config file search locations
_CONFIG_FILENAMES = [".patch_engine.yaml", ".patch_engine.yml"]

_ENV_PREFIX = "PATCH_ENGINE_"


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Patch engine configuration.

    Settings are resolved in priority order:
    1. Environment variables (``PATCH_ENGINE_<KEY>``)
    2. .patch_engine.yaml config file
    3. Built-in defaults

    A nested ``editing:`` mapping in the YAML file is accepted as well as
    top-level keys.
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = dict(yaml_data or {})
        if isinstance(yd.get("editing"), dict):
            yd.update(yd.pop("editing"))

        # Helper: env var > yaml > default
        def _get(key: str, cast=str):
            env_val = os.getenv(_ENV_PREFIX + key.upper())
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(key)
            if yaml_val is not None:
                return cast(yaml_val)
            return _DEFAULTS[key]

        def _get_bool(key: str) -> bool:
            env_val = os.getenv(_ENV_PREFIX + key.upper())
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes")
            yaml_val = yd.get(key)
            if yaml_val is not None:
                return bool(yaml_val)
            return _DEFAULTS[key]

        # Hunk application
        self.HUNK_SLACK_LINES = _get("hunk_slack_lines", cast=int)

        # Block matching
        self.FUZZY_MATCH_THRESHOLD = _get("fuzzy_match_threshold", cast=float)
        self.IGNORE_WHITESPACE = _get_bool("ignore_whitespace")
        self.SUPPORT_ELISION = _get_bool("support_elision")

        # Merging
        self.CONFLICT_RESOLUTION = _get("conflict_resolution")
        self.PRESERVE_GIT_HEADERS = _get_bool("preserve_git_headers")

        # Diff generation
        self.CONTEXT_LINES = _get("context_lines", cast=int)

        # Runtime
        self.VALIDATE_SYNTAX = _get_bool("validate_syntax")
        self.RECORD_METRICS = _get_bool("record_metrics")
        self.METRICS_DIR = _get("metrics_dir")

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
