"""
Venue-wide runtime configuration.

Business logic reads ``app_settings.<name>`` instead of querying
GlobalSettings. Values are loaded from the database on first access so
``makemigrations`` and ``migrate`` can run before the table exists, and
the cache is refreshed by the signal handlers in ``settings.signals``.
"""

from decimal import Decimal
from typing import Optional, Any
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
import logging

logger = logging.getLogger(__name__)

# GlobalSettings field -> attribute exposed on app_settings
SETTING_FIELDS = (
    "venue_name",
    "currency",
    "tax_rate",
    "manager_discount_threshold",
    "require_manager_for_void",
    "min_custom_void_reason_length",
    "default_low_stock_threshold",
)


class AppSettings:
    """Process-wide cache of the GlobalSettings row."""

    _instance: Optional["AppSettings"] = None
    _loaded: bool = False

    def __new__(cls) -> "AppSettings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __getattr__(self, name: str) -> Any:
        # Only reached for names missing from __dict__
        if name.startswith("_") or name not in SETTING_FIELDS:
            raise AttributeError(f"'AppSettings' object has no attribute '{name}'")
        if not self._loaded:
            self.reload(log=False)
        return self.__dict__[name]

    @staticmethod
    def _fetch():
        from .models import GlobalSettings

        try:
            row = GlobalSettings.objects.order_by("pk").first()
            if row is None:
                row = GlobalSettings.objects.create()
                logger.info("Created default GlobalSettings instance")
        except DatabaseError as e:
            raise ImproperlyConfigured(f"Failed to load settings: {e}")
        return row

    def reload(self, log: bool = True) -> None:
        """Copy the current GlobalSettings values onto this instance."""
        row = self._fetch()
        for field in SETTING_FIELDS:
            self.__dict__[field] = getattr(row, field)
        self._loaded = True
        if log:
            logger.info("AppSettings cache reloaded")

    def invalidate(self) -> None:
        """Forget loaded values; the next read goes back to the database."""
        for field in SETTING_FIELDS:
            self.__dict__.pop(field, None)
        self._loaded = False

    def __repr__(self):
        if not self._loaded:
            return "<AppSettings (not loaded)>"
        return f"<AppSettings venue={self.venue_name!r} currency={self.currency} tax_rate={self.tax_rate}>"


app_settings = AppSettings()
