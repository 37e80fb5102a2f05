import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class RealtimeConfig(AppConfig):
    """App configuration for the poker session core."""

    name = "realtime"
    verbose_name = "Planning poker realtime"

    def ready(self):
        from .config import config

        logger.info(
            "Realtime app ready (redact_unrevealed_votes=%s)",
            config.REDACT_UNREVEALED_VOTES,
        )
