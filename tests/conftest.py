"""Shared fixtures and in-memory fakes for the matchmaker tests.

RecordingPool: pool fake counting snapshot reads and expansion calls
RecordingTree: index fake counting inserts and answering range queries with a fixed result
make_client: compact Client constructor
"""
from typing import Dict, FrozenSet, Iterable, List, Optional

import pytest

from matchmaker.config import Configuration
from matchmaker.data_models import Client
from matchmaker.matching_models import ConfigurationParameters


def make_client(client_id: int, skill: float = 0.0, latency: float = 0.0, tol_skill: float = 0.0, tol_latency: float = 0.0) -> Client:
    return Client(
        client_id=client_id,
        self_data={"skill": skill, "latency": latency},
        searching_data={"skill": tol_skill, "latency": tol_latency},
    )


class RecordingPool:
    """Pool fake that records how the matcher uses it."""

    def __init__(self, clients: Iterable[Client] = ()) -> None:
        self.clients: Dict[int, Client] = {c.client_id: c for c in clients}
        self.get_clients_calls = 0
        self.expand_calls = 0
        self.on_expand = None

    def get_clients(self) -> FrozenSet[Client]:
        self.get_clients_calls += 1
        return frozenset(self.clients.values())

    def expand_clients_parameters(self) -> None:
        self.expand_calls += 1
        if self.on_expand is not None:
            self.on_expand()


class RecordingTree:
    """Index fake: counts inserts and returns ``range_result`` for every query."""

    def __init__(self, range_result: Optional[List[Client]] = None) -> None:
        self.inserted: List[tuple] = []
        self.range_result = list(range_result or [])
        self.queries: List[tuple] = []

    def insert(self, coordinate, value) -> None:
        self.inserted.append((list(coordinate), value))

    def range(self, lower, upper) -> List[Client]:
        self.queries.append((list(lower), list(upper)))
        return list(self.range_result)


def configuration_with(team_size: int = 2, dimensions: Optional[List[str]] = None) -> Configuration:
    return Configuration(ConfigurationParameters(team_size=team_size, dimensions=dimensions))


@pytest.fixture
def configuration() -> Configuration:
    return configuration_with(team_size=3)


@pytest.fixture
def empty_pool() -> RecordingPool:
    return RecordingPool()


@pytest.fixture
def ten_clients() -> List[Client]:
    return [make_client(i, skill=float(i * 10), latency=float(i)) for i in range(10)]
