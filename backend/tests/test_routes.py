from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient
from jose import jwt

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app import dependencies  # noqa: E402
from app.config import AdvisorSettings  # noqa: E402
from app.main import app  # noqa: E402
from app.services.advisor import (  # noqa: E402
    AdviceOrchestrator,
    QuickActionExecutor,
    UserContextBuilder,
    build_providers,
)
from app.services.assistant import AssistantService  # noqa: E402
from app.services.chat_store import ConversationStore  # noqa: E402
from app.services.store import InMemoryTables  # noqa: E402

DEMO_USER = "demo-user"


class AdvisorApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.env = patch.dict("os.environ", {"DEV_BYPASS_AUTH": "true"})
        self.env.start()
        self.addCleanup(self.env.stop)

        self.tables = InMemoryTables()
        self.tables.seed(
            "accounts",
            [{"id": "acc-1", "user_id": DEMO_USER, "name": "Checking", "balance": 1234.5, "currency": "USD"}],
        )
        self.tables.seed(
            "budgets",
            [
                {
                    "id": "b-1",
                    "user_id": DEMO_USER,
                    "name": "Groceries",
                    "total_amount": 400,
                    "period_type": "monthly",
                    "is_active": True,
                }
            ],
        )
        settings = AdvisorSettings()
        builder = UserContextBuilder(self.tables)
        orchestrator = AdviceOrchestrator(build_providers(settings), context_builder=builder)
        self.store = ConversationStore(self.tables)

        app.dependency_overrides[dependencies.get_settings] = lambda: settings
        app.dependency_overrides[dependencies.get_context_builder] = lambda: builder
        app.dependency_overrides[dependencies.get_orchestrator] = lambda: orchestrator
        app.dependency_overrides[dependencies.get_conversation_store] = lambda: self.store
        app.dependency_overrides[dependencies.get_assistant] = lambda: AssistantService(self.store, orchestrator)
        app.dependency_overrides[dependencies.get_quick_action_executor] = lambda: QuickActionExecutor(self.tables)
        self.addCleanup(app.dependency_overrides.clear)

        self.client = TestClient(app)

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_context_returns_snapshot_and_note(self) -> None:
        response = self.client.get("/context")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["snapshot"]["total_balance"], 1234.5)
        self.assertEqual(body["snapshot"]["budgets"][0]["name"], "Groceries")
        self.assertIn("Total Balance: $1,234.50", body["context_note"])
        self.assertIn("Active Budgets: 1 [Groceries (monthly)]", body["context_note"])

    def test_chat_message_creates_conversation_and_history(self) -> None:
        response = self.client.post("/chat/messages", json={"content": "What's my spending this month?"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["advice"]["provider"], "fallback")
        self.assertEqual(body["advice"]["quick_actions"][0]["type"], "view_budget")
        self.assertEqual(body["warnings"], [])

        conversations = self.client.get("/chat/conversations").json()["items"]
        self.assertEqual(len(conversations), 1)
        self.assertEqual(conversations[0]["id"], body["conversation_id"])
        self.assertEqual(conversations[0]["title"], "What's my spending this month?")

        messages = self.client.get(f"/chat/conversations/{body['conversation_id']}/messages").json()["items"]
        self.assertEqual([message["role"] for message in messages], ["user", "ai"])

    def test_conversation_lifecycle(self) -> None:
        created = self.client.post("/chat/conversations", json={})
        self.assertEqual(created.status_code, 201)
        cid = created.json()["conversation"]["id"]

        renamed = self.client.patch(f"/chat/conversations/{cid}", json={"title": "Holiday plan"})
        self.assertEqual(renamed.json()["conversation"]["title"], "Holiday plan")

        self.client.post(f"/chat/conversations/{cid}/archive")
        self.assertEqual(self.client.get("/chat/conversations").json()["items"], [])
        archived = self.client.get("/chat/conversations", params={"include_archived": "true"}).json()["items"]
        self.assertEqual([row["id"] for row in archived], [cid])

        self.client.post(f"/chat/conversations/{cid}/unarchive")
        self.assertEqual(len(self.client.get("/chat/conversations").json()["items"]), 1)

        deleted = self.client.delete(f"/chat/conversations/{cid}")
        self.assertEqual(deleted.json(), {"status": "ok"})
        self.assertEqual(self.client.get(f"/chat/conversations/{cid}/messages").status_code, 404)

    def test_other_users_conversation_is_not_found(self) -> None:
        foreign = self.store.create_conversation("someone-else", title="Private")
        self.assertEqual(self.client.get(f"/chat/conversations/{foreign['id']}/messages").status_code, 404)
        response = self.client.post(
            "/chat/messages", json={"content": "hello", "conversation_id": foreign["id"]}
        )
        self.assertEqual(response.status_code, 404)

    def test_advice_with_provided_context(self) -> None:
        response = self.client.post(
            "/advice",
            json={
                "message": "Help me save",
                "context": {"total_balance": 10, "monthly_income": 100, "monthly_expenses": 50},
                "context_source": "provided",
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["provider"], "fallback")
        self.assertIn("$50.00", body["content"])
        self.assertEqual([action["type"] for action in body["quick_actions"]], ["set_goal", "emergency_calc"])

    def test_advice_without_data_is_rejected(self) -> None:
        response = self.client.post(
            "/advice", json={"message": "Help me save", "context": {}, "context_source": "provided"}
        )
        self.assertEqual(response.status_code, 422)

    def test_quick_action_creates_goal(self) -> None:
        response = self.client.post(
            "/quick-actions",
            json={
                "action": {"label": "Create Goal", "icon": "Target", "type": "create_goal"},
                "extra": {"name": "Car", "target_amount": 5000},
            },
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["navigate_to"], "/budget-planning")
        goal = self.tables.fetch_one("financial_goals", filters={"user_id": f"eq.{DEMO_USER}"})
        self.assertEqual(goal["name"], "Car")

    def test_quick_action_needs_only_a_type(self) -> None:
        response = self.client.post("/quick-actions", json={"action": {"type": "create_budget"}})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ok"])
        budget = self.tables.fetch_one("budgets", filters={"name": "eq.New Budget"})
        self.assertEqual(budget["user_id"], DEMO_USER)

        navigation = self.client.post("/quick-actions", json={"action": {"type": "set_alert"}})
        self.assertEqual(navigation.json()["navigate_to"], "/profile-settings")

        self.assertEqual(self.client.post("/quick-actions", json={"action": {"type": ""}}).status_code, 422)


class AuthTests(unittest.TestCase):
    def setUp(self) -> None:
        self.env = patch.dict(
            "os.environ", {"DEV_BYPASS_AUTH": "false", "SUPABASE_JWT_SECRET": "test-secret"}
        )
        self.env.start()
        self.addCleanup(self.env.stop)
        self.store = ConversationStore(InMemoryTables())
        app.dependency_overrides[dependencies.get_conversation_store] = lambda: self.store
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)

    def test_missing_token_is_unauthorized(self) -> None:
        self.assertEqual(self.client.get("/chat/conversations").status_code, 401)

    def test_wrong_secret_is_unauthorized(self) -> None:
        token = jwt.encode({"sub": "u-9", "aud": "authenticated"}, "other-secret", algorithm="HS256")
        response = self.client.get("/chat/conversations", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)

    def test_valid_token_scopes_to_subject(self) -> None:
        self.store.create_conversation("u-9", title="Mine")
        self.store.create_conversation("u-10", title="Not mine")
        token = jwt.encode({"sub": "u-9", "aud": "authenticated"}, "test-secret", algorithm="HS256")

        response = self.client.get("/chat/conversations", headers={"Authorization": f"Bearer {token}"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["title"] for row in response.json()["items"]], ["Mine"])


if __name__ == "__main__":
    unittest.main()
