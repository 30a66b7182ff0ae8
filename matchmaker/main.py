from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.markup import escape
from rich.table import Table

from .config import ConfigurationError, load_configuration
from .ingest import clients_to_frame, read_clients, teams_to_frame
from .matcher import MatchSearchTree
from .pool import InMemoryClientPool
from .service import MatchmakingService
from .synthetic import DEFAULT_DIMENSIONS, generate_clients


app = typer.Typer(help="Team matchmaker CLI")


def _fail(message: str) -> None:
	print(f"[red]{escape(message)}[/red]")
	raise typer.Exit(code=1)


def _load_pool(csv_path: Path, **config_overrides):
	try:
		configuration = load_configuration(**config_overrides)
		clients = read_clients(csv_path)
		pool = InMemoryClientPool(clients, expansion=configuration.get_configuration_parameters().expansion)
	except (ConfigurationError, KeyError, ValueError, FileNotFoundError) as e:
		_fail(f"Error: {e}")
	return configuration, pool


@app.command()
def run(
	csv_path: Path = typer.Argument(..., help="Client CSV (client_id, self_<attr>..., search_<attr>...)"),
	team_size: Optional[int] = typer.Option(None, help="Clients per team (env MATCHMAKER_TEAM_SIZE)"),
	dimensions: Optional[str] = typer.Option(None, help="Comma separated attribute order"),
	cycles: Optional[int] = typer.Option(None, help="Maximum number of matching cycles"),
	interval: Optional[float] = typer.Option(None, help="Seconds to wait between cycles"),
	expansion_step: Optional[float] = typer.Option(None, help="Tolerance added per cycle"),
	expansion_factor: Optional[float] = typer.Option(None, help="Tolerance multiplier per cycle"),
	max_tolerance: Optional[float] = typer.Option(None, help="Upper bound for widened tolerances"),
	out_path: Optional[Path] = typer.Option(None, "--out", help="Write committed teams to this CSV"),
):
	"""Run matching cycles until the pool is drained or stops making progress."""
	configuration, pool = _load_pool(
		csv_path,
		team_size=team_size,
		dimensions=dimensions,
		max_cycles=cycles,
		cycle_interval=interval,
		expansion_step=expansion_step,
		expansion_factor=expansion_factor,
		max_tolerance=max_tolerance,
	)
	print(f"[green]Loaded[/green] {len(pool)} clients from {csv_path}")

	def progress(cycle: int, teams_in_cycle: int, waiting: int) -> None:
		print(f"   - cycle {cycle}: {teams_in_cycle} teams, {waiting} waiting")

	service = MatchmakingService(pool, configuration)
	teams = service.run(progress_fn=progress)

	table = Table("team", "cycle", "members")
	for i, team in enumerate(teams, start=1):
		table.add_row(str(i), str(team.cycle), ", ".join(str(m) for m in team.members))
	print(table)
	print(f"[bold]Committed {len(teams)} teams[/bold] in {service.cycles_run} cycles; {len(pool)} clients still waiting")

	if out_path:
		teams_to_frame(teams).to_csv(out_path, index=False)
		print(f"[green]Saved teams to[/green] {out_path}")


@app.command()
def candidates(
	csv_path: Path = typer.Argument(..., help="Client CSV"),
	client_id: int = typer.Argument(..., help="Client to inspect"),
	team_size: Optional[int] = typer.Option(None, help="Clients per team"),
	dimensions: Optional[str] = typer.Option(None, help="Comma separated attribute order"),
):
	"""Run one cycle without committing and show a client's candidates."""
	configuration, pool = _load_pool(csv_path, team_size=team_size, dimensions=dimensions)
	client = next((c for c in pool.get_clients() if c.client_id == client_id), None)
	if client is None:
		_fail(f"Client {client_id} not found in {csv_path}")

	matcher = MatchSearchTree(pool, configuration)
	try:
		matcher.match_iteration()
	except ConfigurationError as e:
		_fail(f"Error: {e}")

	found = sorted(matcher.find_matching_set_for(client), key=lambda c: c.client_id)
	table = Table("client_id", *(f"self_{d}" for d in matcher.dimensions or []))
	for other in found:
		table.add_row(str(other.client_id), *(str(other.self_data[d]) for d in matcher.dimensions or []))
	print(f"[bold]{len(found)} candidates[/bold] for client {client_id}")
	print(table)

	team = matcher.try_creating_a_match_from(client, found)
	members = ", ".join(str(c.client_id) for c in sorted(team, key=lambda c: c.client_id))
	status = "complete" if len(team) == configuration.get_team_size() else "partial"
	print(f"Team ({status}, {len(team)}/{configuration.get_team_size()}): {members}")


@app.command()
def generate(
	out_path: Path = typer.Argument(..., help="Where to write the synthetic client CSV"),
	count: int = typer.Option(100, help="Number of clients"),
	dimensions: str = typer.Option(",".join(DEFAULT_DIMENSIONS), help="Comma separated attribute names"),
	seed: int = typer.Option(42, help="Random seed"),
	spread: float = typer.Option(100.0, help="Self-data values are drawn from [0, spread)"),
	base_tolerance: float = typer.Option(5.0, help="Starting tolerances are drawn from [0, base_tolerance]"),
):
	"""Write a synthetic client population."""
	names = [d.strip() for d in dimensions.split(",") if d.strip()]
	try:
		clients = generate_clients(count, names, seed=seed, spread=spread, base_tolerance=base_tolerance)
	except ValueError as e:
		_fail(f"Error: {e}")
	clients_to_frame(clients).to_csv(out_path, index=False)
	print(f"[green]Wrote {len(clients)} clients to[/green] {out_path}")


if __name__ == "__main__":
	app()
