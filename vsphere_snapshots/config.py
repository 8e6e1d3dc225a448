"""
Configuration for the snapshot checks

Settings are read from a YAML file (config/vsphere-snapshots.yaml by
default) and may be overridden by command line flags. The vCenter password
is resolved with this priority order:

1. Environment variable (VSPHERE_PASSWORD)
2. Secrets file (vsphere-secrets.yaml next to the config file)
3. Config file value
4. Interactive prompt
"""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .thresholds import Thresholds

DEFAULT_CONFIG_PATH = "config/vsphere-snapshots.yaml"
SECRETS_FILE_NAME = "vsphere-secrets.yaml"
PASSWORD_ENV_VAR = "VSPHERE_PASSWORD"

LOG_LEVELS = ("disabled", "error", "warn", "info", "debug")
DEFAULT_LOG_LEVEL = "info"


class ConfigError(ValueError):
    """Invalid or missing configuration."""


@dataclass
class VCenterSettings:
    hostname: str
    username: str
    password: Optional[str] = None
    port: int = 443
    domain: Optional[str] = None
    trust_cert: bool = False


@dataclass
class Filters:
    include_resource_pools: List[str] = field(default_factory=list)
    exclude_resource_pools: List[str] = field(default_factory=list)
    ignored_vms: List[str] = field(default_factory=list)


@dataclass
class Config:
    vcenter: VCenterSettings
    thresholds: Thresholds = field(default_factory=Thresholds)
    filters: Filters = field(default_factory=Filters)
    log_level: str = DEFAULT_LOG_LEVEL
    path: Optional[Path] = None


class SecretsManager:
    """Resolve the vCenter password from the configured sources."""

    def __init__(self, secrets_file: Path):
        self.secrets_file = secrets_file
        self._secrets_cache: Optional[Dict[str, Any]] = None

    def _load_secrets_file(self) -> Dict[str, Any]:
        """Load secrets from the secrets file (cached)"""
        if self._secrets_cache is not None:
            return self._secrets_cache

        if not self.secrets_file.exists():
            self._secrets_cache = {}
            return self._secrets_cache

        try:
            with open(self.secrets_file, "r", encoding="utf-8") as f:
                self._secrets_cache = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                f"Failed to load secrets file {self.secrets_file}: {e}"
            ) from e
        return self._secrets_cache

    def get_vcenter_password(
        self, config_value: Optional[str] = None, prompt: bool = True
    ) -> Optional[str]:
        """Get vCenter password"""
        env_value = os.environ.get(PASSWORD_ENV_VAR)
        if env_value:
            return env_value

        secrets = self._load_secrets_file()
        if secrets.get("vcenter_password"):
            return str(secrets["vcenter_password"])

        if config_value:
            return config_value

        if prompt:
            return getpass.getpass("Enter vCenter password: ")

        return None


def _int_setting(section: Dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    return value


def _list_setting(section: Dict[str, Any], key: str) -> List[str]:
    value = section.get(key) or []
    if isinstance(value, str):
        value = [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list of names")
    return [str(item) for item in value]


def build_thresholds(section: Dict[str, Any]) -> Thresholds:
    """Validated thresholds from the ``thresholds`` config section."""
    defaults = Thresholds()
    try:
        return Thresholds(
            age_warning_days=_int_setting(
                section, "age_warning_days", defaults.age_warning_days
            ),
            age_critical_days=_int_setting(
                section, "age_critical_days", defaults.age_critical_days
            ),
            size_warning_gb=_int_setting(
                section, "size_warning_gb", defaults.size_warning_gb
            ),
            size_critical_gb=_int_setting(
                section, "size_critical_gb", defaults.size_critical_gb
            ),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid thresholds: {e}") from e


def parse_config(data: Dict[str, Any], path: Optional[Path] = None) -> Config:
    """Build a Config from already-parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    vcenter = data.get("vcenter") or {}
    for key in ("hostname", "username"):
        if not vcenter.get(key):
            raise ConfigError(f"Missing 'vcenter.{key}' in configuration")

    port = _int_setting(vcenter, "port", 443)
    if not 0 < port < 65536:
        raise ConfigError(f"Invalid vCenter port: {port}")

    filters_section = data.get("filters") or {}
    filters = Filters(
        include_resource_pools=_list_setting(filters_section, "include_resource_pools"),
        exclude_resource_pools=_list_setting(filters_section, "exclude_resource_pools"),
        ignored_vms=_list_setting(filters_section, "ignored_vms"),
    )
    if filters.include_resource_pools and filters.exclude_resource_pools:
        raise ConfigError(
            "Only one of include_resource_pools or exclude_resource_pools may be set"
        )

    log_level = str((data.get("logging") or {}).get("level", DEFAULT_LOG_LEVEL)).lower()
    if log_level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid logging level {log_level!r}, expected one of {', '.join(LOG_LEVELS)}"
        )

    return Config(
        vcenter=VCenterSettings(
            hostname=str(vcenter["hostname"]),
            username=str(vcenter["username"]),
            password=vcenter.get("password"),
            port=port,
            domain=vcenter.get("domain"),
            trust_cert=bool(vcenter.get("trust_cert", False)),
        ),
        thresholds=build_thresholds(data.get("thresholds") or {}),
        filters=filters,
        log_level=log_level,
        path=path,
    )


def load_config(config_path: str) -> Config:
    """Load configuration from a YAML file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config: {e}") from e

    return parse_config(data or {}, path)


def resolve_password(config: Config, prompt: bool = True) -> str:
    """Fill in ``config.vcenter.password`` from the secure sources."""
    base_dir = config.path.parent if config.path else Path.cwd()
    secrets_mgr = SecretsManager(base_dir / SECRETS_FILE_NAME)
    password = secrets_mgr.get_vcenter_password(config.vcenter.password, prompt=prompt)
    if not password:
        raise ConfigError(
            "vCenter password not provided.\n"
            f"Set environment variable: export {PASSWORD_ENV_VAR}='your-password'"
        )
    config.vcenter.password = password
    return password
