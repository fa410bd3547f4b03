from __future__ import annotations

import copy
import re
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from app.services.common import iso_utc, parse_datetime
from app.services.supabase_rest import SupabaseRestError

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _coerce_dates(stored: str, text: str) -> Tuple[Any, Any] | None:
    # Date columns compare by calendar day, timestamp columns by instant.
    if not (_ISO_DATE.match(stored) and _ISO_DATE.match(text)):
        return None
    left, right = parse_datetime(stored), parse_datetime(text)
    if left is None or right is None:
        return None
    if len(stored.strip()) == 10:
        return left.date(), right.date()
    return left, right


def _coerce_pair(stored: Any, text: str) -> Tuple[Any, Any]:
    if isinstance(stored, bool):
        return stored, text.strip().lower() in {"true", "t", "1"}
    if isinstance(stored, (int, float)):
        try:
            return float(stored), float(text)
        except ValueError:
            return str(stored), text
    stored_text = "" if stored is None else str(stored)
    return _coerce_dates(stored_text, text) or (stored_text, text)


def _matches(row: Dict[str, Any], column: str, expression: str) -> bool:
    operator, _, operand = expression.partition(".")
    value = row.get(column)
    if operator == "is":
        target = operand.strip().lower()
        if target == "null":
            return value is None
        if target in {"true", "false"}:
            return value is (target == "true")
        return False
    if value is None:
        return operator == "neq"
    left, right = _coerce_pair(value, operand)
    if operator == "eq":
        return left == right
    if operator == "neq":
        return left != right
    if operator == "gt":
        return left > right
    if operator == "gte":
        return left >= right
    if operator == "lt":
        return left < right
    if operator == "lte":
        return left <= right
    raise SupabaseRestError(f"Unsupported filter operator: {operator}")


@dataclass
class InMemoryTables:
    """Dict-backed stand-in for ``SupabaseRestClient``.

    Implements the same row API so services can run without a Supabase project
    (local development, tests).
    """

    tables: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    clock: Callable[[], str] = iso_utc
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def configured(self) -> bool:
        return True

    def seed(self, table: str, rows: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.tables.setdefault(table, []).extend(copy.deepcopy(rows))

    def _select(self, table: str, filters: Dict[str, str] | None) -> List[Dict[str, Any]]:
        rows = self.tables.get(table, [])
        return [
            row
            for row in rows
            if all(_matches(row, column, expression) for column, expression in (filters or {}).items())
        ]

    def fetch_rows(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        page_size: int = 1000,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._select(table, filters)]
        if order:
            column, _, direction = order.partition(".")
            present = [row for row in rows if row.get(column) is not None]
            missing = [row for row in rows if row.get(column) is None]
            present.sort(key=lambda row: row.get(column), reverse=direction == "desc")
            rows = present + missing
        if limit is not None:
            rows = rows[: max(0, limit)]
        if select.strip() != "*":
            columns = [item.strip() for item in select.split(",") if item.strip()]
            rows = [{column: row.get(column) for column in columns} for row in rows]
        return rows

    def fetch_one(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Dict[str, str] | None = None,
    ) -> Dict[str, Any] | None:
        rows = self.fetch_rows(table, select=select, filters=filters, limit=1)
        return rows[0] if rows else None

    def insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        stamp = self.clock()
        record = {
            "id": str(uuid.uuid4()),
            "created_at": stamp,
            "updated_at": stamp,
            **copy.deepcopy(row),
        }
        with self._lock:
            self.tables.setdefault(table, []).append(record)
        return copy.deepcopy(record)

    def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        *,
        filters: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise SupabaseRestError(f"Refusing unfiltered update on {table}")
        with self._lock:
            matched = self._select(table, filters)
            for row in matched:
                row.update(copy.deepcopy(values))
            return [copy.deepcopy(row) for row in matched]

    def delete_rows(self, table: str, *, filters: Dict[str, str]) -> None:
        if not filters:
            raise SupabaseRestError(f"Refusing unfiltered delete on {table}")
        with self._lock:
            doomed = {id(row) for row in self._select(table, filters)}
            self.tables[table] = [row for row in self.tables.get(table, []) if id(row) not in doomed]
