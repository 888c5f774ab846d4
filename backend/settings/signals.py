"""
Signal handlers for the settings app.
Automatically updates the configuration cache when GlobalSettings are modified.
"""

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from .models import GlobalSettings
import logging

logger = logging.getLogger(__name__)


@receiver(post_save, sender=GlobalSettings)
def reload_app_settings(sender, instance, **kwargs):
    """
    Reload the AppSettings cache when GlobalSettings are updated so changes
    are immediately available without a restart.
    """
    # Import here to avoid circular imports and ensure the singleton is loaded
    from .config import app_settings

    app_settings.reload()
    logger.info(f"Configuration cache updated: {app_settings!r}")


@receiver(post_delete, sender=GlobalSettings)
def invalidate_app_settings(sender, instance, **kwargs):
    from .config import app_settings

    app_settings.invalidate()
