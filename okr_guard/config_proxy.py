"""
Configuration management for okr-guard.

Settings are resolved in the following order:
1. Runtime overrides (via configure_settings)
2. Django settings (OKR_GUARD)
3. Library defaults (LIBRARY_DEFAULTS)
"""

from typing import Any

from django.conf import settings

from .defaults import LIBRARY_DEFAULTS

# Runtime storage for overrides (avoids modifying Django settings)
_RUNTIME_SETTINGS: dict[str, Any] = {}


class SettingsProxy:
    """Proxy for accessing okr-guard settings with hierarchical resolution."""

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value using dot notation.

        Args:
            key: Setting key to retrieve, e.g. ``"rate_limiting.enabled"``
            default: Default value if the setting is not found anywhere

        Returns:
            The setting value from the highest priority source
        """
        for source in (
            _RUNTIME_SETTINGS,
            getattr(settings, "OKR_GUARD", None) or {},
            LIBRARY_DEFAULTS,
        ):
            value = self._get_nested_value(source, key)
            if value is not None:
                return value
        return default

    def _get_nested_value(self, data: dict[str, Any], key: str) -> Any:
        if not isinstance(data, dict):
            return None

        current: Any = data
        for k in key.split("."):
            if not isinstance(current, dict) or k not in current:
                return None
            current = current[k]
        return current

    def _set_nested_value(self, data: dict[str, Any], key: str, value: Any) -> None:
        keys = key.split(".")
        current = data
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value


settings_proxy = SettingsProxy()


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value using the hierarchical settings system."""
    return settings_proxy.get(key, default)


def configure_settings(**overrides: Any) -> None:
    """
    Apply runtime overrides.

    Keys use dot notation with ``__`` standing in for the dot, so
    ``configure_settings(rate_limiting__enabled=False)`` overrides
    ``rate_limiting.enabled``.
    """
    for key, value in overrides.items():
        settings_proxy._set_nested_value(
            _RUNTIME_SETTINGS, key.replace("__", "."), value
        )


def clear_runtime_settings() -> None:
    """Clear all runtime overrides."""
    _RUNTIME_SETTINGS.clear()
