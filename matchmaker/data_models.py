import math
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import BaseModel, Field, FiniteFloat, field_validator

from .config import ConfigurationError


class Client(BaseModel):
    """
    Represents a single client waiting in the matchmaking pool.

    self_data is the client's fixed position in compatibility space, and
    searching_data holds how far from that position (per attribute) the client
    accepts a partner. searching_data is prioritized: its key order must match
    the dimension order used to key the search tree.

    Two Client objects are the same client when their client_id is equal, so
    tolerances can widen in place without changing set membership.
    """

    client_id: int
    self_data: Dict[str, FiniteFloat] = Field(default_factory=dict)
    searching_data: Dict[str, FiniteFloat] = Field(default_factory=dict)

    @field_validator("searching_data")
    @classmethod
    def _tolerances_not_negative(cls, value: Dict[str, float]) -> Dict[str, float]:
        negative = [name for name, tolerance in value.items() if tolerance < 0]
        if negative:
            raise ValueError(f"tolerances must be >= 0, got negative values for {negative}")
        return value

    def __hash__(self) -> int:
        return hash(self.client_id)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Client):
            return NotImplemented
        return self.client_id == other.client_id

    def coordinate(self, dimensions: Sequence[str]) -> List[float]:
        """Self-data as a vector in the given dimension order."""
        if list(self.self_data) != list(dimensions):
            raise ConfigurationError(
                f"Client {self.client_id} self-data attributes {list(self.self_data)} "
                f"do not match the cycle dimensions {list(dimensions)}"
            )
        vector = [float(self.self_data[name]) for name in dimensions]
        if not all(math.isfinite(v) for v in vector):
            raise ConfigurationError(f"Client {self.client_id} has non-finite self-data: {vector}")
        return vector

    def search_box(self, dimensions: Sequence[str]) -> Tuple[List[float], List[float]]:
        """Lower and upper corners of the box this client searches in."""
        if list(self.searching_data) != list(dimensions):
            raise ConfigurationError(
                f"Client {self.client_id} searching-data priority {list(self.searching_data)} "
                f"does not match the cycle dimensions {list(dimensions)}"
            )
        centre = self.coordinate(dimensions)
        tolerances = [float(self.searching_data[name]) for name in dimensions]
        # widened tolerances may overflow to inf, which the tree accepts; NaN it does not
        if any(math.isnan(t) or t < 0 for t in tolerances):
            raise ConfigurationError(f"Client {self.client_id} has invalid tolerances: {tolerances}")
        lower = [c - t for c, t in zip(centre, tolerances)]
        upper = [c + t for c, t in zip(centre, tolerances)]
        return lower, upper
