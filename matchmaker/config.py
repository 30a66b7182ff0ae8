from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional

import pydantic
from dotenv import load_dotenv

from .matching_models import ConfigurationParameters, ExpansionPolicy


ENV_PREFIX = "MATCHMAKER_"


class ConfigurationError(ValueError):
    """Inconsistent or invalid configuration; aborts the current matching cycle."""


class Configuration:
    """Read-only access to the matchmaking settings."""

    def __init__(self, parameters: Optional[ConfigurationParameters] = None) -> None:
        self._parameters = parameters or ConfigurationParameters()

    def get_configuration_parameters(self) -> ConfigurationParameters:
        return self._parameters

    def get_team_size(self) -> int:
        team_size = self._parameters.team_size
        if team_size < 1:
            raise ConfigurationError(f"team_size must be a positive integer, got {team_size}")
        return team_size

    def get_dimensions(self) -> Optional[List[str]]:
        return self._parameters.dimensions


def _parse_dimensions(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    names = [part.strip() for part in raw.split(",") if part.strip()]
    return names or None


def load_configuration(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> Configuration:
    """Build a Configuration from environment variables and explicit overrides.

    Environment variables (optionally from a .env file):
        MATCHMAKER_TEAM_SIZE, MATCHMAKER_DIMENSIONS (comma separated),
        MATCHMAKER_EXPANSION_FACTOR, MATCHMAKER_EXPANSION_STEP,
        MATCHMAKER_MAX_TOLERANCE, MATCHMAKER_CYCLE_INTERVAL, MATCHMAKER_MAX_CYCLES

    Keyword overrides use the same names in lower case without the prefix
    (``team_size``, ``dimensions``, ``expansion_factor``, ...). Overrides set to
    None are ignored so CLI options can be passed straight through.

    Raises:
        ConfigurationError: If a value is malformed or fails validation.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    raw: Dict[str, Any] = {}
    for key in (
        "team_size",
        "dimensions",
        "expansion_factor",
        "expansion_step",
        "max_tolerance",
        "cycle_interval",
        "max_cycles",
    ):
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None and str(value).strip() != "":
            raw[key] = value
    for key, value in overrides.items():
        if value is not None:
            raw[key] = value

    dimensions = raw.get("dimensions")
    if isinstance(dimensions, str):
        dimensions = _parse_dimensions(dimensions)

    try:
        expansion = ExpansionPolicy(
            factor=raw.get("expansion_factor", 1.0),
            step=raw.get("expansion_step", 1.0),
            ceiling=raw.get("max_tolerance"),
        )
        parameters = ConfigurationParameters(
            team_size=raw.get("team_size", 2),
            dimensions=dimensions,
            expansion=expansion,
            cycle_interval=raw.get("cycle_interval", 0.0),
            max_cycles=raw.get("max_cycles"),
        )
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid matchmaker configuration: {e}") from e

    configuration = Configuration(parameters)
    # fail fast on a team size the matcher would reject every cycle
    configuration.get_team_size()
    return configuration
