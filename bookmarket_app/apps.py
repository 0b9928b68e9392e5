from django.apps import AppConfig


class BookmarketAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bookmarket_app"
    verbose_name = "Book Marketplace"

    def ready(self):
        from . import signals  # noqa: F401
