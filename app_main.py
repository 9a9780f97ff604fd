"""Application entry point for the MindPop learning platform server."""

from __future__ import annotations

import os

import uvicorn

from mindpop.constants.gateway_constants import GATEWAY_API_KEY, GATEWAY_TIMEOUT_SECONDS, GATEWAY_URL
from mindpop.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from mindpop.core.errors import ValidationError
from mindpop.core.learning_platform import LearningPlatform
from mindpop.core.models import UserRole
from mindpop.gateway import InMemoryGateway, PersistenceGateway, RestGateway
from mindpop.server.api_server import create_api_app
from mindpop.utils.logging_config import configure_logging


def _build_gateway() -> PersistenceGateway:
    if GATEWAY_URL and GATEWAY_API_KEY:
        return RestGateway(GATEWAY_URL, GATEWAY_API_KEY, timeout=GATEWAY_TIMEOUT_SECONDS)
    return InMemoryGateway()


def _register_admin(platform: LearningPlatform) -> None:
    """Register the administrator named by MINDPOP_ADMIN_EMAIL / MINDPOP_ADMIN_PASSWORD, if set."""
    email = os.getenv("MINDPOP_ADMIN_EMAIL")
    password = os.getenv("MINDPOP_ADMIN_PASSWORD")
    if not email or not password:
        return
    platform.accounts.register(email, password, os.getenv("MINDPOP_ADMIN_NAME", "Administrator"), UserRole.ADMIN)


def main() -> None:
    """Initialize logging, wire the platform and serve the API in the foreground."""
    logger = configure_logging()
    logger.info("Starting MindPop...")

    gateway = _build_gateway()
    logger.info("Using %s", type(gateway).__name__)
    platform = LearningPlatform(gateway)
    try:
        _register_admin(platform)
    except ValidationError as exc:
        logger.error("Administrator account not registered: %s", exc)

    logger.info("API available at http://%s:%s/", DEFAULT_HOST, DEFAULT_PORT)
    uvicorn.run(create_api_app(platform), host=DEFAULT_HOST, port=DEFAULT_PORT, log_level="info")


if __name__ == "__main__":
    main()
