import sys
import logging
from typing import Any

from loguru import logger

from src.config.settings import settings


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Filter function to mask API keys in log records."""
    sensitive_keys = ["key", "token", "authorization", "secret", "cookie"]

    def mask(value: str) -> str:
        if len(value) > 8:
            return value[:4] + "****" + value[-4:]
        return "********"

    def mask_value(key: str, value: Any) -> Any:
        if isinstance(value, str) and any(sk in key.lower() for sk in sensitive_keys):
            return mask(value)
        if isinstance(value, dict):
            return {k: mask_value(k, v) for k, v in value.items()}
        if isinstance(value, list):
            return [mask_value(key, item) for item in value]
        return value

    if "extra" in record and isinstance(record["extra"], dict):
        for extra_key in list(record["extra"]):
            record["extra"][extra_key] = mask_value(
                extra_key, record["extra"][extra_key]
            )

    # Known secrets are replaced wherever they show up in the message
    for secret in (settings.faceit_api_key, settings.faceit_client_key):
        if secret and secret in record["message"]:
            record["message"] = record["message"].replace(secret, "********")

    return True


def setup_logging() -> None:
    """Configures Loguru logger based on application settings."""
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=False,
        filter=sensitive_data_filter,
    )

    logger.info(f"Logging initialized with level: {settings.log_level}")

    # Route uvicorn/httpx standard logging through loguru
    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            frame, depth = logging.currentframe(), 2
            while frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(
                level, record.getMessage()
            )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.info("Standard logging intercepted.")
