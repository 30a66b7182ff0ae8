from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

import numpy as np
import pandas as pd

from .data_models import Client
from .matching_models import Team


ID_COLUMN = "client_id"
SELF_PREFIX = "self_"
SEARCH_PREFIX = "search_"

TEAM_COLUMNS = ["team_index", "cycle", "size", "member_ids"]


def attribute_columns(df: pd.DataFrame) -> Tuple[List[str], List[str]]:
    """Return (self attribute names, searching attribute names) in column order."""
    columns = [col.strip() if isinstance(col, str) else col for col in df.columns]
    self_attrs = [c[len(SELF_PREFIX):] for c in columns if isinstance(c, str) and c.startswith(SELF_PREFIX)]
    search_attrs = [c[len(SEARCH_PREFIX):] for c in columns if isinstance(c, str) and c.startswith(SEARCH_PREFIX)]
    return self_attrs, search_attrs


def clients_from_frame(df: pd.DataFrame) -> List[Client]:
    """Convert a client table into Client objects.

    Expected columns: ``client_id``, one ``self_<attr>`` per attribute and a
    matching ``search_<attr>`` tolerance. Column order is the attribute order
    and the searching priority.

    Raises:
        KeyError: If the id column or a self_/search_ counterpart is missing.
        ValueError: If ids are not unique integers, or attribute values are
            not finite numbers.
    """
    out = df.copy()
    out.columns = [col.strip() if isinstance(col, str) else col for col in out.columns]

    self_attrs, search_attrs = attribute_columns(out)
    missing = []
    if ID_COLUMN not in out.columns:
        missing.append(ID_COLUMN)
    missing += [f"{SEARCH_PREFIX}{a}" for a in self_attrs if a not in search_attrs]
    missing += [f"{SELF_PREFIX}{a}" for a in search_attrs if a not in self_attrs]
    if missing:
        raise KeyError(f"Missing required columns: {sorted(missing)}")
    if not self_attrs:
        raise KeyError(f"Missing required columns: no '{SELF_PREFIX}<attribute>' columns found")

    numeric_cols = [ID_COLUMN] + [f"{SELF_PREFIX}{a}" for a in self_attrs] + [f"{SEARCH_PREFIX}{a}" for a in search_attrs]
    for col in numeric_cols:
        converted = pd.to_numeric(out[col], errors="coerce")
        if converted.isna().any():
            bad_rows = out.index[converted.isna()].tolist()
            raise ValueError(f"Column '{col}' has missing or non-numeric values in rows {bad_rows}")
        if not np.isfinite(converted).all():
            bad_rows = out.index[~np.isfinite(converted)].tolist()
            raise ValueError(f"Column '{col}' has infinite values in rows {bad_rows}")
        out[col] = converted

    fractional = out[ID_COLUMN] % 1 != 0
    if fractional.any():
        raise ValueError(f"Column '{ID_COLUMN}' has non-integer ids in rows {out.index[fractional].tolist()}")
    out[ID_COLUMN] = out[ID_COLUMN].astype(int)

    if out[ID_COLUMN].duplicated().any():
        dupes = sorted(out.loc[out[ID_COLUMN].duplicated(), ID_COLUMN].astype(int).unique().tolist())
        raise ValueError(f"Duplicate client ids: {dupes}")

    clients = []
    for _, row in out.iterrows():
        clients.append(
            Client(
                client_id=int(row[ID_COLUMN]),
                self_data={a: float(row[f"{SELF_PREFIX}{a}"]) for a in self_attrs},
                searching_data={a: float(row[f"{SEARCH_PREFIX}{a}"]) for a in search_attrs},
            )
        )
    return clients


def read_clients(csv_path: Path) -> List[Client]:
    if not Path(csv_path).exists():
        raise FileNotFoundError(f"Client CSV not found: {csv_path}")
    df = pd.read_csv(csv_path)
    return clients_from_frame(df)


def clients_to_frame(clients: Iterable[Client]) -> pd.DataFrame:
    """Inverse of clients_from_frame; rows ordered by client_id."""
    rows = []
    for client in sorted(clients, key=lambda c: c.client_id):
        row = {ID_COLUMN: client.client_id}
        for name, value in client.self_data.items():
            row[f"{SELF_PREFIX}{name}"] = value
        for name, tolerance in client.searching_data.items():
            row[f"{SEARCH_PREFIX}{name}"] = tolerance
        rows.append(row)
    return pd.DataFrame(rows)


def teams_to_frame(teams: Iterable[Team]) -> pd.DataFrame:
    rows = []
    for i, team in enumerate(teams, start=1):
        rows.append(
            {
                "team_index": i,
                "cycle": team.cycle,
                "size": team.size,
                "member_ids": " ".join(str(m) for m in team.members),
            }
        )
    return pd.DataFrame(rows, columns=TEAM_COLUMNS)
