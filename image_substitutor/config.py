"""Configuration management for image-substitutor.

Every setting is resolved through the same fallback chain:
environment variable -> initialized options object -> ``[substitutor]``
section of the config file -> built-in default.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

if TYPE_CHECKING:
    from .policy.interface import HostMode

try:
    import koji
except ImportError:
    koji = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

CONFIG_SECTION = "substitutor"

# Module-level config cache
_config: Optional[Dict[str, Any]] = None
_options: Optional[Any] = None  # Harness options object (set via initialize())


def initialize(options: Any) -> None:
    """Initialize config module with a harness options object.

    Attributes named ``substitutor_<key>`` on the object take precedence
    over the config file.

    Args:
        options: Parsed options object from the test harness
    """
    global _options
    _options = options
    logger.debug("Config module initialized with options object")


def _parse_config_file(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Parse the ``[substitutor]`` section of a config file.

    Args:
        config_file: Path to an ini-style config file or a directory of them.

    Returns:
        Dict of raw string values, empty when nothing could be read.
    """
    if not config_file:
        return {}
    if koji is None:
        logger.debug("koji library unavailable, skipping config file %s", config_file)
        return {}

    try:
        parser = koji.read_config_files([config_file], raw=True)
    except Exception as exc:
        logger.warning("Failed to read config file %s: %s", config_file, exc)
        return {}

    if not parser.has_section(CONFIG_SECTION):
        logger.debug("No [%s] section in %s", CONFIG_SECTION, config_file)
        return {}
    return dict(parser.items(CONFIG_SECTION))


def _get_config() -> Dict[str, Any]:
    """Get parsed config dict, initializing if needed."""
    global _config
    if _config is None:
        config_file = os.environ.get("IMAGE_SUBSTITUTOR_CONFIG")
        _config = _parse_config_file(config_file)
    return _config


def _get_config_value(
    key: str,
    default: Any,
    env_var: Optional[str] = None,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var -> options -> config file -> default.

    Args:
        key: Config key name (in [substitutor] section)
        default: Default value if not found
        env_var: Optional environment variable name
        converter: Optional function to convert string value (e.g., int, bool)

    Returns:
        Config value (converted if converter provided)
    """
    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if converter:
                try:
                    return converter(env_value)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s: %s, using default", env_var, env_value
                    )
                    return default
            return env_value

    if _options is not None:
        option_key = f"substitutor_{key}"
        if hasattr(_options, option_key):
            value = getattr(_options, option_key)
            if converter and isinstance(value, str):
                try:
                    return converter(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid value for %s: %s, using default", key, value)
                    return default
            return value

    config = _get_config()
    value = config.get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Invalid value for config key %s: %s, using default", key, value
                )
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
             False, "false", "False", "0", "no", "off" -> False
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_strict_true(value: Any) -> bool:
    """Only the literal "true" (any case) enables the setting."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _parse_list(value: Any) -> List[str]:
    """Parse a list setting.

    Accepts:
    - List: ["kyleaure/", "other/"]
    - String (space or comma separated): "kyleaure/,other/"
    """
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, str):
        return [item.strip() for item in value.replace(",", " ").split() if item.strip()]
    return []


def mirror_registry() -> Optional[str]:
    """Mirror registry host[:port]; None when the mirror is not configured."""
    value = _get_config_value(
        "mirror_registry",
        None,
        env_var="IMAGE_SUBSTITUTOR_MIRROR_REGISTRY",
    )
    return value or None


def mirror_user() -> Optional[str]:
    """User name for logging in to the mirror registry."""
    return _get_config_value("mirror_user", None, env_var="IMAGE_SUBSTITUTOR_MIRROR_USER") or None


def mirror_token() -> Optional[str]:
    """Token or password for logging in to the mirror registry."""
    return _get_config_value("mirror_token", None, env_var="IMAGE_SUBSTITUTOR_MIRROR_TOKEN") or None


def mirror_name() -> str:
    """Mirror organization caching the public registry."""
    return _get_config_value(
        "mirror_name",
        "wasliberty-docker-remote",
        env_var="IMAGE_SUBSTITUTOR_MIRROR_NAME",
    )


def legacy_mirror_name() -> str:
    """Mirror organization holding images removed from the public registry."""
    return _get_config_value(
        "legacy_mirror_name",
        "wasliberty-infrastructure-docker",
        env_var="IMAGE_SUBSTITUTOR_LEGACY_MIRROR_NAME",
    )


def legacy_prefixes() -> List[str]:
    """Repository prefixes served from the legacy mirror."""
    value = _get_config_value(
        "legacy_prefixes",
        ["kyleaure/"],
        env_var="IMAGE_SUBSTITUTOR_LEGACY_PREFIXES",
    )
    return _parse_list(value)


def mirror_only_marker() -> str:
    """Repository substring marking images that only exist in the mirror."""
    return _get_config_value(
        "mirror_only_marker",
        "wasliberty-",
        env_var="IMAGE_SUBSTITUTOR_MIRROR_ONLY_MARKER",
    )


def forbidden_registry_pattern() -> str:
    """Registry host pattern that must never be requested explicitly."""
    return _get_config_value(
        "forbidden_registry",
        "artifactory.swg-devops.com",
        env_var="IMAGE_SUBSTITUTOR_FORBIDDEN_REGISTRY",
    )


def force_external() -> bool:
    """Operator override: always use the original image name."""
    return _get_config_value(
        "force_external",
        False,
        env_var="IMAGE_SUBSTITUTOR_FORCE_EXTERNAL",
        converter=_parse_strict_true,
    )


def mock_mirror() -> bool:
    """Pretend the mirror is usable when generating names (tests only)."""
    return _get_config_value(
        "mock_mirror",
        False,
        env_var="MOCK_ARTIFACTORY_BEHAVIOR",
        converter=_parse_strict_true,
    )


def mock_registry() -> str:
    """Registry host used for mocked mirror names when none is configured."""
    return _get_config_value(
        "mock_registry",
        "mock.mirror.example.com",
        env_var="IMAGE_SUBSTITUTOR_MOCK_REGISTRY",
    )


def container_host() -> str:
    """URI of the container service images are pulled through.

    URI format expected by podman-py PodmanClient:
    - unix:///var/run/podman.sock (local Unix socket)
    - tcp://host:port or ssh://user@host/run/podman/podman.sock (remote)
    """
    # The runtime's own variables only replace the built-in default
    default = (
        os.environ.get("CONTAINER_HOST")
        or os.environ.get("DOCKER_HOST")
        or "unix:///var/run/podman.sock"
    )
    return _get_config_value(
        "container_host",
        default,
        env_var="IMAGE_SUBSTITUTOR_CONTAINER_HOST",
    )


def host_mode() -> HostMode:
    """LOCAL for socket-backed services, REMOTE for network-backed ones."""
    from .policy.interface import HostMode

    scheme = urlparse(container_host()).scheme.lower()
    if scheme in ("", "unix", "http+unix", "npipe"):
        return HostMode.LOCAL
    return HostMode.REMOTE


def pull_timeout() -> int:
    """Image pull timeout in seconds (default: 300)."""
    return _get_config_value(
        "pull_timeout",
        300,
        env_var="IMAGE_SUBSTITUTOR_PULL_TIMEOUT",
        converter=int,
    )


def known_images() -> List[str]:
    """Original image names the audit collector accepts without complaint."""
    value = _get_config_value(
        "known_images",
        [],
        env_var="IMAGE_SUBSTITUTOR_KNOWN_IMAGES",
    )
    return _parse_list(value)


def monitoring_enabled() -> bool:
    """Enable the status server."""
    return _get_config_value(
        "monitoring_enabled",
        False,
        env_var="IMAGE_SUBSTITUTOR_MONITORING_ENABLED",
        converter=_parse_bool,
    )


def monitoring_bind() -> str:
    """Status server bind address (default: "127.0.0.1:8080")."""
    value = _get_config_value(
        "monitoring_bind",
        "127.0.0.1:8080",
        env_var="IMAGE_SUBSTITUTOR_MONITORING_BIND",
    )
    if ":" not in value:
        logger.warning("Invalid monitoring_bind format, using default: 127.0.0.1:8080")
        return "127.0.0.1:8080"
    return value


def reset_config() -> None:
    """Reset config cache (useful for testing)."""
    global _config, _options
    _config = None
    _options = None
