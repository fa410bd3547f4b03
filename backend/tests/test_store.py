from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app.services.store import InMemoryTables  # noqa: E402
from app.services.supabase_rest import SupabaseRestError  # noqa: E402


class InMemoryTablesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tables = InMemoryTables()
        self.tables.seed(
            "budgets",
            [
                {"id": "b-1", "user_id": "u-1", "total_amount": 100, "is_active": True, "end_date": None},
                {"id": "b-2", "user_id": "u-1", "total_amount": 250.5, "is_active": False, "end_date": "2026-12-31"},
                {"id": "b-3", "user_id": "u-2", "total_amount": 75, "is_active": True, "end_date": None},
            ],
        )

    def _ids(self, **filters: str) -> list[str]:
        return [row["id"] for row in self.tables.fetch_rows("budgets", filters=filters, order="id.asc")]

    def test_filter_operators(self) -> None:
        self.assertEqual(self._ids(user_id="eq.u-1"), ["b-1", "b-2"])
        self.assertEqual(self._ids(user_id="neq.u-1"), ["b-3"])
        self.assertEqual(self._ids(is_active="eq.true"), ["b-1", "b-3"])
        self.assertEqual(self._ids(total_amount="gte.100"), ["b-1", "b-2"])
        self.assertEqual(self._ids(total_amount="lt.100"), ["b-3"])
        self.assertEqual(self._ids(end_date="is.null"), ["b-1", "b-3"])

    def test_date_filters_compare_as_dates(self) -> None:
        tables = InMemoryTables()
        tables.seed(
            "transactions",
            [
                {"id": "day", "transaction_date": "2026-09-19"},
                {"id": "offset", "transaction_date": "2026-09-19T14:00:00+02:00"},
                {"id": "later", "transaction_date": "2026-09-19T13:00:00Z"},
                {"id": "before", "transaction_date": "2026-09-18"},
            ],
        )
        rows = tables.fetch_rows(
            "transactions", filters={"transaction_date": "gte.2026-09-19T12:00:00.000000Z"}, order="id.asc"
        )
        self.assertEqual([row["id"] for row in rows], ["day", "later", "offset"])

    def test_unknown_operator_raises(self) -> None:
        with self.assertRaises(SupabaseRestError):
            self.tables.fetch_rows("budgets", filters={"id": "like.b*"})

    def test_ordering_limit_and_projection(self) -> None:
        rows = self.tables.fetch_rows("budgets", select="id,total_amount", order="total_amount.desc", limit=2)
        self.assertEqual(rows, [{"id": "b-2", "total_amount": 250.5}, {"id": "b-1", "total_amount": 100}])

    def test_returned_rows_are_copies(self) -> None:
        row = self.tables.fetch_one("budgets", filters={"id": "eq.b-1"})
        row["total_amount"] = 0
        self.assertEqual(self.tables.fetch_one("budgets", filters={"id": "eq.b-1"})["total_amount"], 100)

    def test_insert_fills_identity_and_timestamps(self) -> None:
        tables = InMemoryTables(clock=lambda: "2026-10-19T00:00:00.000000Z")
        created = tables.insert_row("ai_conversations", {"user_id": "u-1", "updated_at": "explicit"})
        self.assertTrue(created["id"])
        self.assertEqual(created["created_at"], "2026-10-19T00:00:00.000000Z")
        self.assertEqual(created["updated_at"], "explicit")

    def test_update_and_delete(self) -> None:
        updated = self.tables.update_rows("budgets", {"is_active": False}, filters={"user_id": "eq.u-2"})
        self.assertEqual([row["id"] for row in updated], ["b-3"])
        self.assertEqual(self._ids(is_active="eq.true"), ["b-1"])

        self.tables.delete_rows("budgets", filters={"user_id": "eq.u-1"})
        self.assertEqual(self._ids(), ["b-3"])
        with self.assertRaises(SupabaseRestError):
            self.tables.delete_rows("budgets", filters={})


if __name__ == "__main__":
    unittest.main()
