import logging

from studio_render.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    settings = get_settings()
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    logging.getLogger(__name__).debug(f"[CONFIG] {settings.app_name} ({settings.environment})")
