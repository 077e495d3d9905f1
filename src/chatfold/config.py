import logging

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatfold.throttle import DEFAULT_WINDOW

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class StreamSettings(BaseSettings):
    """Runtime settings for streaming and the OpenAI transport.

    Values come from ``CHATFOLD_*`` environment variables; the API key
    falls back to ``OPENAI_API_KEY``.

    Example:
        settings = StreamSettings()
        runner = StreamRunner(throttle_window=settings.throttle_window)
    """

    model_config = SettingsConfigDict(env_prefix="CHATFOLD_", populate_by_name=True)

    throttle_window: float = Field(default=DEFAULT_WINDOW, ge=0)
    model: str = "gpt-4o-mini"
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CHATFOLD_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: str | None = None
    max_retries: int = Field(default=5, ge=0)
    timeout: float = Field(default=600.0, gt=0)
    log_level: str = "INFO"


def configure_logging(level: str | int = "INFO", log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )
