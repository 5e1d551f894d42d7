"""Report export — JSON and CSV output for the chart / UI layer.

Converts engine results into plain, JSON-safe structures.  Infinite
profit factors become the ``"∞"`` symbol rather than a non-standard
``Infinity`` literal, and floats are rounded for display.

Usage::

    exporter = ReportExporter()
    json_str = exporter.to_json(engine.report())
    csv_str = exporter.series_to_csv(bucket_daily(trades))
"""

from __future__ import annotations

import csv
import io
import json
import math
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Iterable

from .metrics import INFINITY_SYMBOL
from .timeseries import SeriesPoint


class ReportExporter:
    """Serialise engine reports.

    Parameters
    ----------
    decimal_places : int
        Rounding precision for numeric fields.  Default 4.
    """

    def __init__(self, *, decimal_places: int = 4) -> None:
        self._dp = decimal_places

    def json_safe(self, value: Any) -> Any:
        """Recursively convert a result into JSON-encodable primitives."""
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, bool) or value is None or isinstance(value, str):
            return value
        if isinstance(value, float):
            if math.isinf(value):
                return INFINITY_SYMBOL if value > 0 else "-" + INFINITY_SYMBOL
            if math.isnan(value):
                return None
            return round(value, self._dp)
        if isinstance(value, int):
            return value
        if hasattr(value, "to_dict"):
            return self.json_safe(value.to_dict())
        if is_dataclass(value) and not isinstance(value, type):
            return self.json_safe(asdict(value))
        if hasattr(value, "model_dump"):
            return self.json_safe(value.model_dump())
        if isinstance(value, dict):
            return {str(k): self.json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [self.json_safe(v) for v in value]
        return str(value)

    def to_json(self, report: Any, *, indent: int = 2) -> str:
        return json.dumps(self.json_safe(report), indent=indent, ensure_ascii=False)

    def series_to_csv(
        self,
        series: Iterable[SeriesPoint],
        *,
        value_column: str | None = None,
    ) -> str:
        """Export a series as ``date,<value_column>`` CSV with a header row.

        The value column defaults to the points' own label (``pnl`` for
        P&L series).
        """
        points = list(series)
        if value_column is None:
            value_column = points[0].label if points else "pnl"
        buf = io.StringIO()
        writer = csv.writer(buf)
        writer.writerow(["date", value_column])
        for point in points:
            writer.writerow([point.date, round(point.value, self._dp)])
        return buf.getvalue()
