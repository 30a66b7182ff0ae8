"""
The matching cycle that turns waiting clients into candidate sets and teams.

Every cycle it will:

- Clear the candidate sets and drop the previous search tree
- Snapshot the pool and insert every waiting client into a fresh k-d tree,
  keyed by its self-data
- Ask the pool to widen every client's tolerances (once per cycle)
- For each waiting client:
    - Build the search box from its self-data and its widened tolerances
    - Query the tree for everyone inside the box
    - Store the result, minus the client itself, as its candidate set

Teams are assembled afterwards, one initiating client at a time, by growing a
set in which every member accepts every member admitted before it. Committing a
team and removing its members from the pool is left to the caller (see
service.py).
"""
from __future__ import annotations

import enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from .config import Configuration, ConfigurationError
from .data_models import Client
from .pool import ClientPool
from .search_tree import KDTree


ClientMatches = Dict[int, Set[Client]]


class CycleState(str, enum.Enum):
    IDLE = "idle"
    INDEX_CLEARED = "index_cleared"
    INDEX_BUILT = "index_built"
    TOLERANCES_EXPANDED = "tolerances_expanded"
    CANDIDATES_RESOLVED = "candidates_resolved"


class MatchSearchTree:
    """Builds the per-cycle search tree and candidate sets for a client pool.

    Args:
        client_pool: Source of waiting clients and of tolerance expansion.
        configuration: Provides the team size and, optionally, a fixed dimension order.
        client_matches: Candidate-set map to fill; a new dict is used if omitted.
        search_tree_factory: Creates the empty index for each cycle.
    """

    def __init__(
        self,
        client_pool: ClientPool,
        configuration: Configuration,
        client_matches: Optional[ClientMatches] = None,
        search_tree_factory: Callable[[], KDTree] = KDTree,
    ) -> None:
        self._client_pool = client_pool
        self._configuration = configuration
        self._client_matches: ClientMatches = client_matches if client_matches is not None else {}
        self._search_tree_factory = search_tree_factory
        self._search_tree: Optional[KDTree] = None
        self._dimensions: Optional[List[str]] = None
        self.state = CycleState.IDLE

    @property
    def client_matches(self) -> ClientMatches:
        return self._client_matches

    @property
    def dimensions(self) -> Optional[List[str]]:
        """Dimension order of the current cycle's search tree."""
        return self._dimensions

    def match_iteration(self) -> None:
        """Run one full cycle: clear, fill tree, expand tolerances, fill candidate sets.

        Any exception aborts the cycle and is re-raised; the state returns to IDLE
        so the next cycle starts from scratch.
        """
        try:
            self.clear_search_tree()
            self.state = CycleState.INDEX_CLEARED
            self.fill_search_tree()
            self.state = CycleState.INDEX_BUILT
            self._client_pool.expand_clients_parameters()
            self.state = CycleState.TOLERANCES_EXPANDED
            self.fill_clients_matches()
            self.state = CycleState.CANDIDATES_RESOLVED
        finally:
            self.state = CycleState.IDLE

    def clear_search_tree(self) -> None:
        self._client_matches.clear()
        self._search_tree = None
        self._dimensions = None

    def _resolve_dimensions(self, clients: Iterable[Client]) -> Optional[List[str]]:
        configured = self._configuration.get_dimensions()
        if configured:
            return list(configured)
        first = min(clients, key=lambda c: c.client_id, default=None)
        if first is None:
            return None
        if not first.self_data:
            raise ConfigurationError(f"Client {first.client_id} has no self-data attributes")
        return list(first.self_data)

    def fill_search_tree(self) -> None:
        """Insert every waiting client into a fresh search tree keyed by its self-data."""
        clients = self._client_pool.get_clients()
        dimensions = self._resolve_dimensions(clients)
        search_tree = self._search_tree_factory()
        for client in clients:
            search_tree.insert(client.coordinate(dimensions), client)
        self._search_tree = search_tree
        self._dimensions = dimensions

    def fill_clients_matches(self) -> None:
        """Resolve the candidate set of every waiting client against the current tree."""
        self._client_matches.clear()
        if self._search_tree is None:
            self.fill_search_tree()
        clients = self._client_pool.get_clients()
        for client in clients:
            if self._dimensions is None:
                # tree was built from an empty snapshot; nothing can be found
                self._client_matches[client.client_id] = set()
                continue
            lower, upper = client.search_box(self._dimensions)
            found = self._search_tree.range(lower, upper)
            self._client_matches[client.client_id] = {
                other for other in found if other.client_id != client.client_id
            }

    def find_matching_set_for(self, client: Client) -> Set[Client]:
        """Candidate set resolved for ``client`` this cycle (empty if unknown)."""
        return set(self._client_matches.get(client.client_id, ()))

    def try_creating_a_match_from(self, client: Client, candidates: Iterable[Client]) -> Set[Client]:
        """Greedily grow a team around ``client`` from ``candidates``.

        A candidate joins only if its own candidate set contains every member
        accepted so far, and every member accepted after ``client`` has the
        candidate in its own set. This is stricter than checking the
        candidate's side alone: a candidate that lists everyone is still
        rejected when an accepted member does not list it back, so every
        returned team is a clique of mutual candidates. Candidates are tried
        in the given order; sets are tried by ascending client_id. The result
        may be smaller than the team size; deciding whether a partial team is
        acceptable is up to the caller.
        """
        team_size = self._configuration.get_team_size()
        if isinstance(candidates, (set, frozenset)):
            ordered = sorted(candidates, key=lambda c: c.client_id)
        else:
            ordered = list(candidates)

        accepted: Set[Client] = {client}
        for candidate in ordered:
            if len(accepted) >= team_size:
                break
            if candidate in accepted:
                continue
            candidate_matches = self._client_matches.get(candidate.client_id, set())
            if not accepted <= candidate_matches:
                continue
            # the initiator's side is implied: candidates are drawn from its own set
            if all(
                candidate in self._client_matches.get(member.client_id, set())
                for member in accepted
                if member.client_id != client.client_id
            ):
                accepted.add(candidate)
        return accepted
