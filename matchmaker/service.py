from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Set

from .config import Configuration, ConfigurationError
from .data_models import Client
from .matcher import MatchSearchTree
from .matching_models import Team
from .pool import InMemoryClientPool


ProgressFn = Callable[[int, int, int], None]
ErrorFn = Callable[[int, ConfigurationError], None]


def _print_cycle_error(cycle: int, error: ConfigurationError) -> None:
    print(f"Warning: matching cycle {cycle} skipped ({error}).")


class MatchmakingService:
    """Runs matching cycles over a pool and commits the teams they produce.

    After each cycle, every still-waiting client (ascending id) gets one attempt
    to assemble a full team from its candidate set. Full teams are committed:
    recorded and removed from the pool. Partial teams are not committed; those
    clients wait for the next cycle, when their tolerances are wider.
    """

    def __init__(
        self,
        pool: InMemoryClientPool,
        configuration: Configuration,
        matcher: Optional[MatchSearchTree] = None,
        on_error: Optional[ErrorFn] = None,
    ) -> None:
        self.pool = pool
        self.configuration = configuration
        self.matcher = matcher or MatchSearchTree(pool, configuration)
        self._on_error = on_error or _print_cycle_error
        self._cycle_lock = threading.Lock()
        self.cycles_run = 0
        self.last_error: Optional[ConfigurationError] = None

    def run_cycle(self) -> List[Team]:
        """Run one matching cycle and its commit pass; returns the committed teams."""
        with self._cycle_lock:
            self.cycles_run += 1
            cycle = self.cycles_run
            self.last_error = None
            try:
                self.matcher.match_iteration()
                return self._commit_pass(cycle)
            except ConfigurationError as e:
                self.last_error = e
                self._on_error(cycle, e)
                return []

    def _commit_pass(self, cycle: int) -> List[Team]:
        team_size = self.configuration.get_team_size()
        waiting = sorted(self.pool.get_clients(), key=lambda c: c.client_id)
        waiting_ids = {c.client_id for c in waiting}
        matched: Set[int] = set()
        teams: List[Team] = []

        for client in waiting:
            if client.client_id in matched:
                continue
            # stale or already committed clients are treated as absent
            candidates = sorted(
                (
                    c
                    for c in self.matcher.find_matching_set_for(client)
                    if c.client_id in waiting_ids and c.client_id not in matched
                ),
                key=lambda c: c.client_id,
            )
            team = self.matcher.try_creating_a_match_from(client, candidates)
            if len(team) < team_size:
                continue
            member_ids = sorted(c.client_id for c in team)
            matched.update(member_ids)
            if self._commit(team):
                teams.append(Team(cycle=cycle, members=member_ids))
        return teams

    def _commit(self, team: Set[Client]) -> bool:
        """Remove a team from the pool; False when some member had already left.

        A team that cannot be removed whole is not reported. Its members that
        were still waiting are put back so they can match in a later cycle.
        """
        removed = [c for c in sorted(team, key=lambda c: c.client_id) if self.pool.remove(c.client_id)]
        if len(removed) == len(team):
            return True
        print(f"Warning: only {len(removed)} of {len(team)} team members were still waiting; team dropped.")
        for client in removed:
            if client.client_id not in self.pool:
                self.pool.register(client)
        return False

    def run(
        self,
        max_cycles: Optional[int] = None,
        interval: Optional[float] = None,
        progress_fn: Optional[ProgressFn] = None,
    ) -> List[Team]:
        """Run cycles until too few clients remain to fill a team or max_cycles is reached.

        Args:
            max_cycles: Cycle limit; falls back to the configured max_cycles. With no
                limit at all, the run stops once a cycle commits no team and no
                tolerance can widen any further.
            interval: Seconds to sleep between cycles; defaults to the configured interval.
            progress_fn: Called as progress_fn(cycle, teams_in_cycle, clients_waiting).

        Returns:
            Every team committed during the run, in commit order.
        """
        parameters = self.configuration.get_configuration_parameters()
        if max_cycles is None:
            max_cycles = parameters.max_cycles
        if interval is None:
            interval = parameters.cycle_interval
        team_size = self.configuration.get_team_size()

        all_teams: List[Team] = []
        cycles = 0
        while len(self.pool) >= team_size:
            if max_cycles is not None and cycles >= max_cycles:
                break
            before = self._tolerance_fingerprint()
            teams = self.run_cycle()
            cycles += 1
            all_teams.extend(teams)

            if progress_fn is not None:
                try:
                    progress_fn(self.cycles_run, len(teams), len(self.pool))
                except Exception:
                    # Ignore progress callback errors to avoid breaking the run
                    pass

            if max_cycles is None and self.last_error is not None:
                break
            if max_cycles is None and not teams and before == self._tolerance_fingerprint():
                # nothing was committed and nothing can widen: further cycles are identical
                break
            if interval:
                time.sleep(interval)
        return all_teams

    def _tolerance_fingerprint(self) -> List[tuple]:
        return sorted(
            (c.client_id, tuple(c.searching_data.values())) for c in self.pool.get_clients()
        )
