"""Driver configuration management.

Configuration is loaded from a single YAML file:
- project/region/profile: Session and naming defaults
- settings: Poll and tail intervals
- stacks: Per-stack template path and optional upload bucket

Resolution order for the config file:
1. --config flag
2. $CFN_DRIVER_CONFIG environment variable
3. ./config.yml
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from stacks import Stack

DEFAULT_CONFIG_NAME = 'config.yml'


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class StackConfig:
    """Configuration for one stack entry."""
    name: str
    template: Path
    bucket: Optional[str] = None


@dataclass
class DriverConfig:
    """Top-level driver configuration.

    Attributes:
        config_file: Path the config was loaded from
        project: Prefix for remote stack names
        region: Session region (None = boto3 default chain)
        profile: Credentials profile (None = boto3 default chain)
        poll_interval: Seconds between change-set status polls
        tail_interval: Seconds between stack event fetches
        stacks: Stack entries keyed by name
    """
    config_file: Path
    project: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None
    poll_interval: float = 1.0
    tail_interval: float = 1.0
    stacks: dict[str, StackConfig] = field(default_factory=dict)

    def stack_names(self) -> list[str]:
        return sorted(self.stacks)

    def load_stack(self, name: str) -> Stack:
        """Build a Stack with its template read from disk.

        Raises:
            ConfigError: Unknown stack or unreadable template
        """
        if name not in self.stacks:
            available = ', '.join(self.stack_names()) or 'none configured'
            raise ConfigError(f"Stack '{name}' not found in {self.config_file}. "
                              f"Available stacks: {available}")
        entry = self.stacks[name]
        if not entry.template.exists():
            raise ConfigError(f"Template not found for stack '{name}': {entry.template}")
        return Stack(
            name=name,
            template=entry.template.read_text(encoding='utf-8'),
            bucket=entry.bucket,
            project=self.project,
            region=self.region,
            profile=self.profile,
        )


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at top level of {path}")
    return data


def _parse_interval(settings: dict, key: str, path: Path) -> float:
    value = settings.get(key, 1.0)
    try:
        interval = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"settings.{key} must be a number in {path}, got {value!r}") from e
    if interval < 0:
        raise ConfigError(f"settings.{key} must not be negative in {path}")
    return interval


def get_config_path(explicit: Optional[str] = None) -> Path:
    """Locate the config file.

    Raises:
        ConfigError: No config file at the resolved location
    """
    if explicit:
        path = Path(explicit)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit}")

    if env_path := os.environ.get('CFN_DRIVER_CONFIG'):
        path = Path(env_path)
        if path.exists():
            return path
        raise ConfigError(f"CFN_DRIVER_CONFIG={env_path} does not exist")

    path = Path.cwd() / DEFAULT_CONFIG_NAME
    if path.exists():
        return path

    raise ConfigError(
        f"{DEFAULT_CONFIG_NAME} not found. "
        "Pass --config or set CFN_DRIVER_CONFIG."
    )


def load_config(explicit: Optional[str] = None) -> DriverConfig:
    """Load driver configuration. Template paths resolve relative to the file."""
    path = get_config_path(explicit)
    data = _parse_yaml(path)
    settings = data.get('settings') or {}
    if not isinstance(settings, dict):
        raise ConfigError(f"settings must be a mapping in {path}")
    entries = data.get('stacks') or {}
    if not isinstance(entries, dict):
        raise ConfigError(f"stacks must be a mapping in {path}")

    stacks: dict[str, StackConfig] = {}
    for name, entry in entries.items():
        if not isinstance(entry, dict) or not entry.get('template'):
            raise ConfigError(f"Stack '{name}' in {path} has no template")
        template = Path(entry['template'])
        if not template.is_absolute():
            template = path.parent / template
        stacks[name] = StackConfig(
            name=name,
            template=template,
            bucket=entry.get('bucket') or None,
        )

    return DriverConfig(
        config_file=path,
        project=data.get('project'),
        region=data.get('region'),
        profile=data.get('profile'),
        poll_interval=_parse_interval(settings, 'poll_interval', path),
        tail_interval=_parse_interval(settings, 'tail_interval', path),
        stacks=stacks,
    )
