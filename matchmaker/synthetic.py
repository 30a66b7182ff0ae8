"""Generate synthetic client populations for trying out the matcher."""

from typing import List, Sequence

import numpy as np

from .data_models import Client


DEFAULT_DIMENSIONS = ("skill", "latency")


def generate_clients(
    n: int,
    dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
    seed: int = 42,
    spread: float = 100.0,
    base_tolerance: float = 5.0,
) -> List[Client]:
    """Draw ``n`` clients with uniform self-data and uniform starting tolerances.

    Args:
        n: Number of clients; ids are 1..n.
        dimensions: Attribute names, in index and priority order.
        seed: Seed for numpy's default_rng, so populations are reproducible.
        spread: Self-data values are drawn from [0, spread).
        base_tolerance: Starting tolerances are drawn from [0, base_tolerance].

    Returns:
        List of Client objects.
    """
    if n < 0:
        raise ValueError(f"n must be >= 0, got {n}")
    if not dimensions:
        raise ValueError("At least one dimension is required.")
    if spread <= 0 or base_tolerance < 0:
        raise ValueError("spread must be > 0 and base_tolerance >= 0")

    rng = np.random.default_rng(seed)
    positions = rng.uniform(0.0, spread, size=(n, len(dimensions)))
    tolerances = rng.uniform(0.0, base_tolerance, size=(n, len(dimensions)))

    clients = []
    for i in range(n):
        clients.append(
            Client(
                client_id=i + 1,
                self_data={name: round(float(v), 3) for name, v in zip(dimensions, positions[i])},
                searching_data={name: round(float(t), 3) for name, t in zip(dimensions, tolerances[i])},
            )
        )
    return clients
