"""
Session store: local user registry and the current session.

Registered users live under USERS_KEY keyed by email; the logged-in user
(or the admin) lives under CURRENT_USER_KEY and is restored on start-up
without re-checking credentials.
"""
import hashlib
import hmac
import logging
import os
import secrets
import threading
import uuid
from typing import Optional

from errors import DuplicateEmail, InvalidCredentials
from kvstore import CURRENT_USER_KEY, USERS_KEY
from schemas import User

logger = logging.getLogger(__name__)

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin")
ADMIN_EMAIL = "admin@ayushyaa.com"

PBKDF2_ROUNDS = 100_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ROUNDS).hex()
    return salt + "$" + digest


def verify_password(password: str, stored: str) -> bool:
    try:
        salt, _ = stored.split("$")
    except ValueError:
        return False
    return hmac.compare_digest(hash_password(password, salt), stored)


class SessionStore:
    """Session of one client.

    `store` holds this client's current user; `registry` holds the user
    accounts shared by every client and defaults to `store`.
    """

    def __init__(
        self,
        store,
        admin_username: Optional[str] = None,
        admin_password: Optional[str] = None,
        registry=None,
        registry_lock: Optional[threading.Lock] = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else store
        self.registry_lock = registry_lock or threading.Lock()
        self.admin_username = admin_username if admin_username is not None else ADMIN_USERNAME
        self.admin_password = admin_password if admin_password is not None else ADMIN_PASSWORD
        current = store.get(CURRENT_USER_KEY)
        self.user: Optional[User] = User.model_validate(current) if current else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"

    def _users(self) -> list:
        return self.registry.get(USERS_KEY, [])

    def _start(self, user: User) -> User:
        self.user = user
        self.store.set(CURRENT_USER_KEY, user.model_dump())
        logger.info("Session started for %s (%s)", user.email, user.role)
        return user

    def signup(self, email: str, password: str, name: str) -> User:
        # exact, case-sensitive email match
        record = {
            "id": f"user_{uuid.uuid4().hex[:12]}",
            "email": email,
            "name": name,
            "password_hash": hash_password(password),
        }
        with self.registry_lock:
            users = self._users()
            if any(u["email"] == email for u in users):
                raise DuplicateEmail()
            users.append(record)
            self.registry.set(USERS_KEY, users)
        return self._start(User(id=record["id"], email=email, name=name, role="user"))

    def login(self, email: str, password: str) -> User:
        for u in self._users():
            if u["email"] == email and verify_password(password, u.get("password_hash", "")):
                return self._start(User(id=u["id"], email=u["email"], name=u["name"], role="user"))
        logger.warning("Rejected login for %s", email)
        raise InvalidCredentials()

    def admin_login(self, username: str, password: str) -> User:
        # TODO: swap the configured pair for hashed admin accounts in the user registry
        if hmac.compare_digest(username.encode(), self.admin_username.encode()) and hmac.compare_digest(
            password.encode(), self.admin_password.encode()
        ):
            return self._start(User(id="admin", email=ADMIN_EMAIL, name="Admin", role="admin"))
        logger.warning("Rejected admin login for %s", username)
        raise InvalidCredentials("Invalid admin credentials")

    def logout(self) -> None:
        if self.user is not None:
            logger.info("Session ended for %s", self.user.email)
        self.user = None
        self.store.delete(CURRENT_USER_KEY)
