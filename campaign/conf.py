"""Settings for the campaign app, read from Django settings with defaults."""

from typing import Any

from django.conf import settings

DEFAULTS: dict[str, Any] = {
    "CAMPAIGN_DEFAULT_ACTIVITY": 4,
    "CAMPAIGN_WEEKLY_NOTES_DEFAULT": "Nenhuma observação.",
    "CAMPAIGN_BLOCK_SEPARATOR": ",",
}


def get_setting(name: str) -> Any:
    """Get a campaign setting, falling back to the app default.

    Args:
        name: Setting name, one of the keys of DEFAULTS.

    Returns:
        The configured value or its default.
    """
    return getattr(settings, name, DEFAULTS[name])
