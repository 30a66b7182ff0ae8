from __future__ import annotations

import threading
from typing import FrozenSet, Iterable, Optional, Protocol

from .data_models import Client
from .matching_models import ExpansionPolicy


class ClientPool(Protocol):
    """What the matcher needs from the pool of waiting clients."""

    def get_clients(self) -> FrozenSet[Client]: ...

    def expand_clients_parameters(self) -> None: ...


class InMemoryClientPool:
    """Thread-safe pool of waiting clients held in memory.

    Snapshot reads, registration, removal and tolerance expansion all take the
    same lock, so a snapshot never observes a half-applied expansion.
    """

    def __init__(self, clients: Iterable[Client] = (), expansion: Optional[ExpansionPolicy] = None) -> None:
        self._lock = threading.RLock()
        self._clients: dict[int, Client] = {}
        self._expansion = expansion or ExpansionPolicy()
        for client in clients:
            self.register(client)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._clients

    @property
    def expansion(self) -> ExpansionPolicy:
        return self._expansion

    def register(self, client: Client) -> None:
        with self._lock:
            if client.client_id in self._clients:
                raise ValueError(f"Client {client.client_id} is already waiting in the pool")
            self._clients[client.client_id] = client

    def remove(self, client_id: int) -> bool:
        """Remove a client; returns False if it was not waiting."""
        with self._lock:
            return self._clients.pop(client_id, None) is not None

    def remove_many(self, client_ids: Iterable[int]) -> int:
        with self._lock:
            return sum(1 for client_id in list(client_ids) if self.remove(client_id))

    def get_clients(self) -> FrozenSet[Client]:
        with self._lock:
            return frozenset(self._clients.values())

    def expand_clients_parameters(self) -> None:
        """Widen every waiting client's tolerances by the expansion policy."""
        with self._lock:
            for client in self._clients.values():
                for name, tolerance in client.searching_data.items():
                    client.searching_data[name] = self._expansion.widen(tolerance)
