"""
Gate configuration.

Built from CORPUSGATE_* environment variables or from a YAML file.
Boolean flags are fail-closed: only 1/true/yes/on enable them.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from corpusgate.core.exceptions import ConfigError

ENV_PREFIX = "CORPUSGATE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def parse_flag(value: Any) -> bool:
    """Fail-closed boolean parse. Anything unrecognized is False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class GateConfig:
    policy_file:             Optional[Path] = None
    allowlist_file:          Optional[Path] = None
    audit_path:              Optional[Path] = None
    key_path:                Optional[Path] = None
    lab_mode:                bool = False
    lab_secret:              Optional[str] = None
    trust_cf_access_headers: bool = False
    log_level:               str = "INFO"
    log_json:                bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GateConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError("Unknown configuration keys", {"keys": unknown})

        kwargs: Dict[str, Any] = {}
        for name in ("policy_file", "allowlist_file", "audit_path", "key_path"):
            value = data.get(name)
            if value not in (None, ""):
                kwargs[name] = Path(value)
        for name in ("lab_mode", "trust_cf_access_headers", "log_json"):
            if name in data:
                kwargs[name] = parse_flag(data[name])

        secret = data.get("lab_secret")
        if secret is not None:
            secret = str(secret).strip()
            kwargs["lab_secret"] = secret or None

        level = str(data.get("log_level", "INFO")).strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError("Invalid log level", {"log_level": level})
        kwargs["log_level"] = level

        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GateConfig":
        """Read CORPUSGATE_<FIELD> variables, e.g. CORPUSGATE_LAB_MODE=1."""
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            key = ENV_PREFIX + f.name.upper()
            if key in environ:
                data[f.name] = environ[key]
        return cls.from_mapping(data)

    @classmethod
    def from_yaml(cls, path: Path) -> "GateConfig":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to load config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")
        return cls.from_mapping(data)
