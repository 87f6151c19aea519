from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence

import pandas as pd


def _safe_col_name(s: str) -> str:
    s = s.strip()
    s = re.sub(r"\s+", "_", s)
    s = re.sub(r"[^0-9A-Za-z_]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return s


def items_to_dataframe(items: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    """
    Convert projected entities (see datasources.project) to a 2D table.

    Nested mappings are flattened into `parent__child` columns; lists are kept as JSON
    strings so that each entity stays one row.
    """
    rows: list[dict[str, Any]] = []
    for it in items:
        row: dict[str, Any] = {}

        def add(prefix: str, obj: Any) -> None:
            if isinstance(obj, Mapping):
                for k, v in obj.items():
                    add(f"{prefix}__{_safe_col_name(str(k))}" if prefix else _safe_col_name(str(k)), v)
            elif isinstance(obj, (list, tuple)):
                row[prefix] = json.dumps(obj, ensure_ascii=False)
            else:
                row[prefix] = obj

        add("", it)
        rows.append(row)
    return pd.DataFrame(rows)


def export_table(
    df: pd.DataFrame, *, csv_path: str | None = None, xlsx_path: str | None = None
) -> None:
    if csv_path:
        df.to_csv(csv_path, index=False)
    if xlsx_path:
        df.to_excel(xlsx_path, index=False)
