# donation_core/apps.py

from django.apps import AppConfig


class DonationCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "donation_core"
    verbose_name = "Donation workflow"

    def ready(self):
        from . import signals  # noqa
