"""Persistence gateway implementations."""

from .base import PersistenceGateway
from .memory import InMemoryGateway
from .rest import RestGateway

__all__ = ["InMemoryGateway", "PersistenceGateway", "RestGateway"]
