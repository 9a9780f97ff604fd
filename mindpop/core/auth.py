"""Authentication collaborator injected into the stores and the attempt workflow.

The workflow only ever reads ``current_user().id``. Credentials are held by an
``AccountDirectory`` supplied by the hosting process; administrators have to be
registered explicitly, nothing is seeded here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from threading import Lock
from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash

from mindpop.constants.gateway_constants import PROFILES
from mindpop.core.errors import GatewayError, PersistenceFailure, ValidationError
from mindpop.core.models import Profile, User, UserRole
from mindpop.core.record_mappers import profile_to_record, utc_now
from mindpop.gateway.base import PersistenceGateway

logger = logging.getLogger(__name__)

class AuthProvider(ABC):
    """Capability the rest of the platform depends on."""

    @abstractmethod
    def current_user(self) -> User | None: ...

    @abstractmethod
    def login(self, email: str, password: str) -> bool: ...

    @abstractmethod
    def signup(self, email: str, password: str, name: str) -> bool: ...

    @abstractmethod
    def logout(self) -> None: ...

    @property
    def is_admin(self) -> bool:
        user = self.current_user()
        return user is not None and user.is_admin


@dataclass(slots=True)
class _Account:
    user: User
    password_hash: str


class AccountDirectory:
    """Registered accounts, shared by every session of one process."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway
        self._lock = Lock()
        self._accounts: dict[str, _Account] = {}

    def register(
        self,
        email: str,
        password: str,
        name: str,
        role: UserRole = UserRole.STUDENT,
    ) -> User:
        normalized = email.strip().lower()
        if not normalized or "@" not in normalized:
            raise ValidationError("A valid email address is required.", {"email": "invalid"})
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters.", {"password": "too short"})
        with self._lock:
            if normalized in self._accounts:
                raise ValidationError("An account with this email already exists.", {"email": "taken"})
            user = User(
                id=uuid4().hex,
                email=normalized,
                role=role,
                name=name.strip() or None,
                created_at=utc_now(),
            )
            self._accounts[normalized] = _Account(user=user, password_hash=generate_password_hash(password))
        profile = Profile(id=user.id, name=user.name or normalized, role=role, created_at=user.created_at)
        try:
            self._gateway.insert(PROFILES, profile_to_record(profile))
        except GatewayError as exc:
            with self._lock:
                self._accounts.pop(normalized, None)
            raise PersistenceFailure(f"Failed to create profile: {exc}") from exc
        logger.info("Registered %s account %s", role.value, user.id)
        return user

    def authenticate(self, email: str, password: str) -> User | None:
        with self._lock:
            account = self._accounts.get(email.strip().lower())
        if account is None:
            return None
        if not check_password_hash(account.password_hash, password):
            return None
        return account.user

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            return next((a.user for a in self._accounts.values() if a.user.id == user_id), None)


class AuthSession(AuthProvider):
    """Per-client session bound to an account directory."""

    def __init__(self, directory: AccountDirectory, user: User | None = None) -> None:
        self._directory = directory
        self._user = user

    def current_user(self) -> User | None:
        return self._user

    def login(self, email: str, password: str) -> bool:
        user = self._directory.authenticate(email, password)
        if user is None:
            logger.info("Rejected login for %s", email)
            return False
        self._user = user
        return True

    def signup(self, email: str, password: str, name: str) -> bool:
        try:
            self._user = self._directory.register(email, password, name)
        except ValidationError as exc:
            logger.info("Signup rejected: %s", exc)
            return False
        return True

    def logout(self) -> None:
        self._user = None
