"""Configuration loader for fragment caches."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from .template import DEFAULT_LEFT, DEFAULT_RIGHT, Parser

ERROR_POLICIES = ("raise", "inline")


@dataclass(frozen=True)
class FragmentsConfig:
    left_delim: str = DEFAULT_LEFT
    right_delim: str = DEFAULT_RIGHT
    wrap_tag: str = "div"
    wrap_attribute: str = "fragment"
    error_policy: str = "raise"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.error_policy not in ERROR_POLICIES:
            raise ValueError(
                f"error_policy must be one of {ERROR_POLICIES}, got {self.error_policy!r}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FragmentsConfig":
        markers = data.get("markers") or {}
        wrap = data.get("wrap") or {}
        return cls(
            left_delim=str(markers.get("left", DEFAULT_LEFT)),
            right_delim=str(markers.get("right", DEFAULT_RIGHT)),
            wrap_tag=str(wrap.get("tag", "div")),
            wrap_attribute=str(wrap.get("attribute", "fragment")),
            error_policy=str(data.get("error_policy", "raise")),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )

    def parser(self) -> Parser:
        return Parser(self.left_delim, self.right_delim)


ENV_MAP = {
    "markers.left": "FRAGMENTS_LEFT_DELIM",
    "markers.right": "FRAGMENTS_RIGHT_DELIM",
    "wrap.tag": "FRAGMENTS_WRAP_TAG",
    "wrap.attribute": "FRAGMENTS_WRAP_ATTRIBUTE",
    "error_policy": "FRAGMENTS_ERROR_POLICY",
    "log_level": "FRAGMENTS_LOG_LEVEL",
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in config_data.items()
    }

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = os.environ[env_name]

    return merged


def load_config(config_path: str | Path = "config/fragments.defaults.yml") -> FragmentsConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return FragmentsConfig.from_dict(data)
