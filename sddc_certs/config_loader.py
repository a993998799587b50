"""
Configuration loading, validation, and parsing.

Loads the SDDC Manager connection and operation settings from YAML, and
resource certificate specs from a separate YAML file.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .client import DEFAULT_API_CALL_TIMEOUT
from .fingerprint import ALGORITHMS, DEFAULT_ALGORITHM
from .logger import get_logger
from .models import ResourceCertificateSpec
from .tasks import DEFAULT_POLL_INTERVAL


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


@dataclass
class SddcManagerConfig:
    """Connection settings for SDDC Manager."""
    host: str
    username: str
    password: str = field(repr=False)
    allow_unverified_tls: bool = False


@dataclass
class Settings:
    """Operation settings."""
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL
    api_call_timeout_seconds: int = DEFAULT_API_CALL_TIMEOUT
    operation_timeout_minutes: int = 60
    stop_on_task_failure: bool = True
    fingerprint_algorithm: str = DEFAULT_ALGORITHM


@dataclass
class Config:
    """Root configuration object."""
    sddc_manager: SddcManagerConfig
    settings: Settings = field(default_factory=Settings)


def _expand_env_vars(value: Any) -> Any:
    """
    Expand ${VAR_NAME} references in string values, recursively.

    Unknown variables are left as written.
    """
    if isinstance(value, str):
        def replace(match):
            return os.environ.get(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace, value)

    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def _read_yaml(path_str: str, what: str) -> Any:
    path = Path(path_str)

    if not path.exists():
        raise ConfigurationError(f"{what} not found: {path_str}")
    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(f"{what} must be YAML (.yaml or .yml): {path_str}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path_str}: {e}")
    except IOError as e:
        raise ConfigurationError(f"Failed to read {path_str}: {e}")

    if not data:
        raise ConfigurationError(f"{what} is empty: {path_str}")

    return _expand_env_vars(data)


def _unexpanded(value: str) -> bool:
    return bool(re.search(r"\$\{[^}]+\}", value))


def _parse_sddc_manager(data: Dict[str, Any]) -> SddcManagerConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("'sddc_manager' must be a mapping")

    config = SddcManagerConfig(
        host=str(data.get("host", "")).strip(),
        username=str(data.get("username", "")),
        password=str(data.get("password", "")),
        allow_unverified_tls=bool(data.get("allow_unverified_tls", False)),
    )

    if not config.host:
        raise ConfigurationError("sddc_manager.host is required")
    if config.host.startswith("http://"):
        raise ConfigurationError("sddc_manager.host must use https://")
    for name in ("username", "password"):
        value = getattr(config, name)
        if not value:
            raise ConfigurationError(f"sddc_manager.{name} is required")
        if _unexpanded(value):
            raise ConfigurationError(
                f"sddc_manager.{name} references an unset environment variable: {value}"
            )

    return config


def _parse_settings(data: Dict[str, Any]) -> Settings:
    if not isinstance(data, dict):
        raise ConfigurationError("'settings' must be a mapping")

    settings = Settings(
        poll_interval_seconds=data.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL),
        api_call_timeout_seconds=data.get("api_call_timeout_seconds", DEFAULT_API_CALL_TIMEOUT),
        operation_timeout_minutes=data.get("operation_timeout_minutes", 60),
        stop_on_task_failure=data.get("stop_on_task_failure", True),
        fingerprint_algorithm=str(data.get("fingerprint_algorithm", DEFAULT_ALGORITHM)).lower(),
    )

    for name in ("poll_interval_seconds", "api_call_timeout_seconds", "operation_timeout_minutes"):
        value = getattr(settings, name)
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")

    if settings.poll_interval_seconds < 1:
        raise ConfigurationError("poll_interval_seconds must be at least 1")
    if settings.api_call_timeout_seconds < 1:
        raise ConfigurationError("api_call_timeout_seconds must be at least 1")
    if settings.operation_timeout_minutes < 1:
        raise ConfigurationError("operation_timeout_minutes must be at least 1")

    if settings.fingerprint_algorithm not in ALGORITHMS:
        raise ConfigurationError(
            f"Invalid fingerprint_algorithm '{settings.fingerprint_algorithm}'. "
            f"Must be one of: {', '.join(ALGORITHMS)}"
        )

    return settings


def load_config(config_path: str) -> Config:
    """
    Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    logger = get_logger()
    data = _read_yaml(config_path, "Configuration file")

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must contain a mapping")
    if "sddc_manager" not in data:
        raise ConfigurationError("Missing 'sddc_manager' section in configuration")

    sddc_manager = _parse_sddc_manager(data["sddc_manager"])
    settings = _parse_settings(data.get("settings") or {})

    logger.info(f"Loaded configuration from {config_path}")
    logger.info(f"  SDDC Manager: {sddc_manager.host} (user {sddc_manager.username})")
    logger.debug(
        f"  Poll interval: {settings.poll_interval_seconds}s, "
        f"call timeout: {settings.api_call_timeout_seconds}s, "
        f"operation timeout: {settings.operation_timeout_minutes}m"
    )
    if sddc_manager.allow_unverified_tls:
        logger.warning("  TLS verification of SDDC Manager is DISABLED")

    return Config(sddc_manager=sddc_manager, settings=settings)


def _parse_spec(entry: Any, index: int, base_dir: Path) -> ResourceCertificateSpec:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Resource entry #{index} must be a mapping")

    fqdn = entry.get("resource_fqdn")
    if not fqdn:
        raise ConfigurationError(f"Resource entry #{index} is missing resource_fqdn")

    material = entry.get("certificate_chain")
    certificate_file = entry.get("certificate_file")
    if material and certificate_file:
        raise ConfigurationError(
            f"Resource {fqdn}: set either certificate_chain or certificate_file, not both"
        )
    if certificate_file:
        path = Path(certificate_file)
        if not path.is_absolute():
            path = base_dir / path
        try:
            material = path.read_text()
        except IOError as e:
            raise ConfigurationError(f"Resource {fqdn}: cannot read {path}: {e}")

    return ResourceCertificateSpec(
        resource_fqdn=fqdn,
        resource_type=entry.get("resource_type"),
        ca_type=entry.get("ca_type"),
        certificate_or_csr_material=material,
    )


def load_resource_specs(specs_path: str) -> List[ResourceCertificateSpec]:
    """
    Load resource certificate specs from YAML.

    The file holds a `resources` list; each entry has resource_fqdn and
    optionally resource_type, ca_type, and certificate_chain or
    certificate_file (relative to the specs file).

    Raises:
        ConfigurationError: If the file or an entry is invalid
    """
    data = _read_yaml(specs_path, "Resource specs file")
    entries = data.get("resources") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError(f"{specs_path} must contain a non-empty 'resources' list")

    base_dir = Path(specs_path).parent
    return [_parse_spec(entry, i, base_dir) for i, entry in enumerate(entries, start=1)]
