"""Campaign app configuration."""

from django.apps import AppConfig


class CampaignConfig(AppConfig):
    """Configuration for the Campaign application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "campaign"
    verbose_name = "Vector Control Campaign"
