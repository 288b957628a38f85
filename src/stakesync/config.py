"""Configuration loading and defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .surface import Surface

_DEFAULT_STATE_DIR = Path.home() / ".local" / "share" / "stakesync"
_DEFAULT_CONFIG_DIR = Path.home() / ".config" / "stakesync"
_DEFAULT_CONFIG_PATH = _DEFAULT_CONFIG_DIR / "config.yaml"


@dataclass
class Config:
    api_base_url: str | None = None
    state_dir: Path = field(default_factory=lambda: _DEFAULT_STATE_DIR)
    surface: Surface = Surface.WEB
    internal_domains: list[str] = field(default_factory=lambda: ["bcg.com"])
    poll_interval: float = 5.0
    batch_limit: int = 200
    request_timeout: float = 10.0

    @property
    def remote_enabled(self) -> bool:
        return bool(self.api_base_url)


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML, falling back to defaults where possible.

    An explicitly given path must exist; a missing default file just means
    defaults.
    """
    path = Path(config_path or _DEFAULT_CONFIG_PATH).expanduser()

    if not path.exists():
        if config_path is None:
            return Config()
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            f"Create one at {_DEFAULT_CONFIG_PATH} or omit --config to use defaults."
        )

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return Config()
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config file: {path}")

    kwargs: dict = {}
    if raw.get("api_base_url"):
        kwargs["api_base_url"] = str(raw["api_base_url"]).rstrip("/")
    if "state_dir" in raw:
        state_dir = raw["state_dir"]
        if not isinstance(state_dir, str) or not state_dir.strip():
            raise ValueError("'state_dir' must be a path")
        kwargs["state_dir"] = Path(state_dir).expanduser()
    if "surface" in raw:
        kwargs["surface"] = Surface.parse(raw["surface"])
    if "internal_domains" in raw:
        domains = raw["internal_domains"]
        if isinstance(domains, str):
            domains = [domains]
        if not isinstance(domains, list):
            raise ValueError("'internal_domains' must be a list of domains")
        kwargs["internal_domains"] = [str(d).strip().lower() for d in domains if d]
    for key, cast in (
        ("poll_interval", float),
        ("batch_limit", int),
        ("request_timeout", float),
    ):
        if key in raw:
            value = cast(raw[key])
            if value <= 0:
                raise ValueError(f"'{key}' must be positive")
            kwargs[key] = value

    return Config(**kwargs)
