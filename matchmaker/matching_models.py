# pydantic models for the matchmaking system
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class Team(BaseModel):
    """Team assembled and committed by the service loop.

    Fields:
        cycle: Number of the matching cycle (1-based) that produced the team.
        members: Client identifiers of the team members, ascending.
    """

    cycle: int = Field(default=0, ge=0)
    members: List[int] = Field(default_factory=list, description="Client ids of the team members")

    @property
    def size(self) -> int:
        return len(self.members)

    def is_complete(self, team_size: int) -> bool:
        return self.size == team_size


class ExpansionPolicy(BaseModel):
    """How waiting clients' tolerances widen once per cycle.

    The new tolerance is ``min(ceiling, tolerance * factor + step)``; with
    ``factor >= 1`` and ``step >= 0`` tolerances never shrink.
    """

    factor: float = Field(default=1.0, ge=1.0, description="Multiplicative growth per cycle")
    step: float = Field(default=1.0, ge=0.0, description="Additive growth per cycle")
    ceiling: Optional[float] = Field(default=None, ge=0.0, description="Upper bound for any tolerance")

    def widen(self, tolerance: float) -> float:
        widened = tolerance * self.factor + self.step
        if self.ceiling is not None:
            # never pull an already wider tolerance back down to the ceiling
            widened = max(tolerance, min(widened, self.ceiling))
        return widened


class ConfigurationParameters(BaseModel):
    """Settings read by the matching core and the service loop.

    Fields:
        team_size: Number of clients in a committed team.
        dimensions: Attribute order used to key the index. When omitted, the
            order is taken from the lowest-id waiting client of each cycle.
        expansion: Tolerance expansion policy applied by the pool.
        cycle_interval: Seconds the service sleeps between cycles.
        max_cycles: Upper bound on cycles for a service run (unbounded if None).
    """

    team_size: int = 2
    dimensions: Optional[List[str]] = None
    expansion: ExpansionPolicy = Field(default_factory=ExpansionPolicy)
    cycle_interval: float = Field(default=0.0, ge=0.0)
    max_cycles: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_dimensions(self) -> "ConfigurationParameters":
        if self.dimensions is not None:
            if not self.dimensions:
                raise ValueError("dimensions must not be empty when given")
            if len(set(self.dimensions)) != len(self.dimensions):
                raise ValueError(f"dimensions contain duplicates: {self.dimensions}")
        return self
