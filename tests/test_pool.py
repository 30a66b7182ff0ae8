"""Unit tests for the in-memory client pool and the expansion policy."""
import threading

import pytest
from pydantic import ValidationError

from conftest import make_client
from matchmaker.matching_models import ExpansionPolicy
from matchmaker.pool import InMemoryClientPool


class TestExpansionPolicy:

    def test_additive_and_multiplicative_growth(self):
        policy = ExpansionPolicy(factor=2.0, step=1.0)
        assert policy.widen(3.0) == 7.0

    def test_ceiling_caps_growth(self):
        policy = ExpansionPolicy(step=10.0, ceiling=12.0)
        assert policy.widen(5.0) == 12.0

    def test_ceiling_never_shrinks_a_wider_tolerance(self):
        """A tolerance already above the ceiling stays where it is."""
        policy = ExpansionPolicy(step=1.0, ceiling=4.0)
        assert policy.widen(9.0) == 9.0

    def test_shrinking_policies_are_rejected(self):
        with pytest.raises(ValidationError):
            ExpansionPolicy(factor=0.5)
        with pytest.raises(ValidationError):
            ExpansionPolicy(step=-1.0)


class TestInMemoryClientPool:

    def test_snapshot_contains_registered_clients(self):
        pool = InMemoryClientPool([make_client(1), make_client(2)])
        assert {c.client_id for c in pool.get_clients()} == {1, 2}
        assert len(pool) == 2
        assert 1 in pool

    def test_snapshot_is_not_affected_by_later_removal(self):
        pool = InMemoryClientPool([make_client(1), make_client(2)])
        snapshot = pool.get_clients()
        pool.remove(1)
        assert len(snapshot) == 2
        assert 1 not in pool

    def test_duplicate_registration_rejected(self):
        pool = InMemoryClientPool([make_client(1)])
        with pytest.raises(ValueError):
            pool.register(make_client(1))

    def test_remove_reports_missing_clients(self):
        pool = InMemoryClientPool([make_client(1), make_client(2)])
        assert pool.remove(1) is True
        assert pool.remove(1) is False
        assert pool.remove_many([2, 3]) == 1
        assert len(pool) == 0

    def test_expansion_widens_every_tolerance_in_place(self):
        client = make_client(1, tol_skill=1.0, tol_latency=2.0)
        pool = InMemoryClientPool([client], expansion=ExpansionPolicy(step=0.5))

        pool.expand_clients_parameters()

        assert client.searching_data == {"skill": 1.5, "latency": 2.5}

    def test_expansion_is_monotone(self):
        client = make_client(1, tol_skill=1.0)
        pool = InMemoryClientPool([client], expansion=ExpansionPolicy(factor=1.5, step=0.0, ceiling=3.0))
        previous = client.searching_data["skill"]
        for _ in range(10):
            pool.expand_clients_parameters()
            assert client.searching_data["skill"] >= previous
            previous = client.searching_data["skill"]
        assert previous == 3.0

    def test_expansion_keeps_priority_order(self):
        client = make_client(1)
        pool = InMemoryClientPool([client])
        pool.expand_clients_parameters()
        assert list(client.searching_data) == ["skill", "latency"]

    def test_concurrent_registration(self):
        """Registrations from several threads are all kept."""
        pool = InMemoryClientPool()

        def register(start):
            for i in range(start, start + 50):
                pool.register(make_client(i))

        threads = [threading.Thread(target=register, args=(n * 50,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(pool) == 200
