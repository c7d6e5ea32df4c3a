"""
Wiring of the storefront services.

The catalog and admin services are shared. Each client gets its own session
and cart, keyed by an opaque token and kept in its own slice of the local
store so it survives a restart.
"""
import logging
import os
import secrets
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from admin import AdminService
from cart import CartLedger
from catalog import CatalogAggregator
from database import MongoGateway
from errors import LoginRequired
from kvstore import SESSIONS_KEY, JsonFileStore, ScopedStore
from session import SessionStore

logger = logging.getLogger(__name__)

STATE_DIR = os.getenv("STOREFRONT_STATE_DIR", ".storefront")


@dataclass
class ClientState:
    token: str
    session: SessionStore
    cart: CartLedger


class Storefront:
    def __init__(
        self,
        gateway,
        store,
        admin_username: Optional[str] = None,
        admin_password: Optional[str] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.catalog = CatalogAggregator(gateway)
        self.admin = AdminService(gateway)
        self.admin_username = admin_username
        self.admin_password = admin_password
        self._clients: Dict[str, ClientState] = {}
        self._lock = threading.Lock()
        self._registry_lock = threading.Lock()

    def _client_state(self, token: str) -> ClientState:
        scoped = ScopedStore(self.store, token)
        return ClientState(
            token=token,
            session=SessionStore(
                scoped,
                self.admin_username,
                self.admin_password,
                registry=self.store,
                registry_lock=self._registry_lock,
            ),
            cart=CartLedger(scoped),
        )

    def open_client(self) -> ClientState:
        token = secrets.token_hex(24)
        with self._lock:
            tokens = self.store.get(SESSIONS_KEY, [])
            tokens.append(token)
            self.store.set(SESSIONS_KEY, tokens)
            client = self._clients[token] = self._client_state(token)
        logger.info("Opened client session %s...", token[:6])
        return client

    def client(self, token: Optional[str]) -> ClientState:
        """Return the state for `token`, restoring it from the store if needed."""
        if not token:
            raise LoginRequired("Missing session token")
        with self._lock:
            client = self._clients.get(token)
            if client is None:
                if token not in self.store.get(SESSIONS_KEY, []):
                    raise LoginRequired("Invalid session token")
                client = self._clients[token] = self._client_state(token)
            return client

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.cart.clear_listeners()
            self._clients.clear()


def build_storefront() -> Storefront:
    logger.info("Storefront state directory: %s", STATE_DIR)
    return Storefront(MongoGateway(), JsonFileStore(STATE_DIR))
