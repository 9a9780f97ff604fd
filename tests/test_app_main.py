import logging

import app_main
from mindpop.core.learning_platform import LearningPlatform
from mindpop.gateway import InMemoryGateway, RestGateway
from mindpop.utils.logging_config import configure_logging


def test_configure_logging_returns_package_logger():
    logger = configure_logging("debug")

    assert logger.name == "mindpop"
    assert isinstance(logger, logging.Logger)


def test_gateway_defaults_to_memory(monkeypatch):
    monkeypatch.setattr(app_main, "GATEWAY_URL", None)

    assert isinstance(app_main._build_gateway(), InMemoryGateway)


def test_gateway_uses_rest_when_configured(monkeypatch):
    monkeypatch.setattr(app_main, "GATEWAY_URL", "https://db.example.com")
    monkeypatch.setattr(app_main, "GATEWAY_API_KEY", "anon-key")

    assert isinstance(app_main._build_gateway(), RestGateway)


def test_admin_is_registered_only_from_environment(monkeypatch):
    platform = LearningPlatform(InMemoryGateway(), run_timers_in_background=False)
    monkeypatch.delenv("MINDPOP_ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("MINDPOP_ADMIN_PASSWORD", raising=False)

    app_main._register_admin(platform)
    assert platform.stats.total_students() == 0

    monkeypatch.setenv("MINDPOP_ADMIN_EMAIL", "owner@example.com")
    monkeypatch.setenv("MINDPOP_ADMIN_PASSWORD", "owner-secret")
    app_main._register_admin(platform)

    owner = platform.accounts.authenticate("owner@example.com", "owner-secret")
    assert owner is not None
    assert owner.is_admin
