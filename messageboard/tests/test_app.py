import unittest
from datetime import datetime

from fastapi.testclient import TestClient

from messageboard.app import create_app
from messageboard.db import REDACTED_TEXT, InMemoryRecordStore, SqlRecordStore, StoreError
from messageboard.dependencies import get_record_store


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.store = get_record_store()
        self.store.reset()

    def _create_thread(self, board="test", text="Hello", password="pw"):
        response = self.client.post(
            f"/api/threads/{board}", json={"text": text, "delete_password": password}
        )
        self.assertEqual(response.status_code, 200)
        return response.json()

    def _reply(self, thread_id, text="reply", password="rpw", board="test"):
        response = self.client.post(
            f"/api/replies/{board}",
            json={"thread_id": thread_id, "text": text, "delete_password": password},
        )
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_create_thread_hides_private_fields(self):
        body = self._create_thread()
        self.assertEqual(
            set(body), {"_id", "text", "created_on", "bumped_on", "replies", "replycount"}
        )
        self.assertEqual(body["replies"], [])
        self.assertEqual(body["replycount"], 0)
        self.assertEqual(body["created_on"], body["bumped_on"])

    def test_create_thread_requires_fields(self):
        response = self.client.post("/api/threads/test", json={"text": "no password"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["fields"], ["delete_password"])
        self.assertIn("error", response.json())

        response = self.client.post(
            "/api/threads/test", json={"text": "", "delete_password": "pw"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["fields"], ["text"])
        self.assertEqual(self.client.get("/api/threads/test").json(), [])

    def test_invalid_json_body_is_rejected(self):
        response = self.client.post(
            "/api/threads/test",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

    def test_form_encoded_body_is_accepted(self):
        response = self.client.post(
            "/api/threads/test", data={"text": "From a form", "delete_password": "pw"}
        )
        self.assertEqual(response.status_code, 200)
        thread_id = response.json()["_id"]

        response = self.client.put("/api/threads/test", data={"thread_id": thread_id})
        self.assertEqual(response.text, "reported")

    def test_list_threads_limits_and_orders_by_bump(self):
        ids = [self._create_thread(text=f"thread {i}")["_id"] for i in range(12)]
        self._reply(ids[0])

        threads = self.client.get("/api/threads/test").json()
        self.assertEqual(len(threads), 10)
        self.assertEqual(threads[0]["_id"], ids[0])
        self.assertEqual(threads[1]["_id"], ids[11])
        bumps = [datetime.fromisoformat(thread["bumped_on"]) for thread in threads]
        self.assertEqual(bumps, sorted(bumps, reverse=True))
        for thread in threads:
            self.assertNotIn("reported", thread)
            self.assertNotIn("delete_password", thread)

    def test_list_threads_is_scoped_to_board(self):
        self._create_thread(board="a")
        self.assertEqual(self.client.get("/api/threads/b").json(), [])
        self.assertEqual(len(self.client.get("/api/threads/a").json()), 1)

    def test_list_shows_three_newest_replies(self):
        thread_id = self._create_thread()["_id"]
        for i in range(5):
            self._reply(thread_id, text=f"reply {i}")

        thread = self.client.get("/api/threads/test").json()[0]
        self.assertEqual(thread["replycount"], 5)
        self.assertEqual(
            [reply["text"] for reply in thread["replies"]],
            ["reply 4", "reply 3", "reply 2"],
        )

        full = self.client.get("/api/replies/test", params={"thread_id": thread_id}).json()
        self.assertEqual(
            [reply["text"] for reply in full["replies"]],
            [f"reply {i}" for i in range(5)],
        )
        for reply in full["replies"]:
            self.assertEqual(set(reply), {"_id", "text", "created_on"})

    def test_reply_bumps_thread(self):
        created = self._create_thread()
        body = self._reply(created["_id"])
        self.assertGreaterEqual(
            datetime.fromisoformat(body["bumped_on"]),
            datetime.fromisoformat(created["bumped_on"]),
        )
        self.assertEqual(body["bumped_on"], body["replies"][0]["created_on"])
        self.assertEqual(body["created_on"], created["created_on"])

    def test_reply_to_missing_thread_is_not_found(self):
        response = self.client.post(
            "/api/replies/test",
            json={"thread_id": "missing", "text": "x", "delete_password": "pw"},
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "thread not found"})

        response = self.client.get("/api/replies/test", params={"thread_id": "missing"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "thread not found"})

    def test_get_replies_requires_thread_id(self):
        response = self.client.get("/api/replies/test")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["fields"], ["thread_id"])

    def test_report_missing_targets_still_reports(self):
        response = self.client.put("/api/threads/test", json={"thread_id": "missing"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "reported")

        response = self.client.put(
            "/api/replies/test", json={"thread_id": "missing", "reply_id": "nope"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "reported")

    def test_report_sets_flag_without_exposing_it(self):
        thread_id = self._create_thread()["_id"]
        reply_id = self._reply(thread_id)["replies"][0]["_id"]
        self.client.put("/api/threads/test", json={"thread_id": thread_id})
        self.client.put(
            "/api/replies/test", json={"thread_id": thread_id, "reply_id": reply_id}
        )

        record = self.store.get_thread(thread_id)
        self.assertTrue(record.reported)
        self.assertTrue(record.replies[0].reported)
        body = self.client.get("/api/replies/test", params={"thread_id": thread_id}).json()
        self.assertNotIn("reported", body)
        self.assertNotIn("reported", body["replies"][0])

    def test_delete_thread(self):
        thread_id = self._create_thread(password="secret")["_id"]

        for payload in (
            {"thread_id": thread_id, "delete_password": "wrong"},
            {"thread_id": "missing", "delete_password": "secret"},
        ):
            response = self.client.request("DELETE", "/api/threads/test", json=payload)
            self.assertEqual(response.text, "incorrect password")

        # Password is right but the thread lives on another board.
        response = self.client.request(
            "DELETE",
            "/api/threads/other",
            json={"thread_id": thread_id, "delete_password": "secret"},
        )
        self.assertEqual(response.text, "incorrect password")

        response = self.client.request(
            "DELETE",
            "/api/threads/test",
            json={"thread_id": thread_id, "delete_password": "secret"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "success")
        self.assertEqual(self.client.get("/api/threads/test").json(), [])
        response = self.client.get("/api/replies/test", params={"thread_id": thread_id})
        self.assertEqual(response.status_code, 404)

    def test_delete_requires_password(self):
        response = self.client.request(
            "DELETE", "/api/threads/test", json={"thread_id": "x"}
        )
        self.assertEqual(response.status_code, 400)

    def test_delete_reply_redacts_text(self):
        thread_id = self._create_thread()["_id"]
        self._reply(thread_id, text="first")
        reply_id = self._reply(thread_id, text="second", password="rpw")["replies"][1]["_id"]

        response = self.client.request(
            "DELETE",
            "/api/replies/test",
            json={"thread_id": thread_id, "reply_id": "nope", "delete_password": "rpw"},
        )
        self.assertEqual(response.text, "incorrect password")
        response = self.client.request(
            "DELETE",
            "/api/replies/test",
            json={"thread_id": thread_id, "reply_id": reply_id, "delete_password": "bad"},
        )
        self.assertEqual(response.text, "incorrect password")
        response = self.client.request(
            "DELETE",
            "/api/replies/test",
            json={"thread_id": thread_id, "reply_id": reply_id, "delete_password": "rpw"},
        )
        self.assertEqual(response.text, "success")

        body = self.client.get("/api/replies/test", params={"thread_id": thread_id}).json()
        self.assertEqual(body["replycount"], 2)
        self.assertEqual(
            [reply["text"] for reply in body["replies"]], ["first", REDACTED_TEXT]
        )

    def test_unknown_route_is_plain_text_404(self):
        response = self.client.get("/api/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")
        self.assertTrue(response.headers["content-type"].startswith("text/plain"))

    def test_unsupported_method_is_plain_text_404(self):
        response = self.client.patch("/api/threads/test", json={})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.text, "Not Found")
        self.assertTrue(response.headers["content-type"].startswith("text/plain"))

    def test_openapi_documents_error_payload(self):
        schema = self.client.get("/openapi.json").json()
        self.assertIn("ErrorResponse", schema["components"]["schemas"])
        responses = schema["paths"]["/api/replies/{board}"]["get"]["responses"]
        self.assertEqual(
            responses["404"]["content"]["application/json"]["schema"]["$ref"],
            "#/components/schemas/ErrorResponse",
        )
        self.assertIn("400", schema["paths"]["/api/threads/{board}"]["post"]["responses"])

    def test_security_headers(self):
        response = self.client.get("/api/threads/test")
        self.assertEqual(response.headers["x-frame-options"], "SAMEORIGIN")
        self.assertEqual(response.headers["x-dns-prefetch-control"], "off")
        self.assertEqual(response.headers["referrer-policy"], "same-origin")


class StoreFailureApiTests(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.client = TestClient(self.app)

    def test_store_failure_is_reported_as_500(self):
        class BrokenStore(InMemoryRecordStore):
            def list_threads(self, board, limit=10):
                raise StoreError("connection refused")

        self.app.dependency_overrides[get_record_store] = BrokenStore
        response = self.client.get("/api/threads/test")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "store unavailable"})

    def test_api_against_sql_store(self):
        store = SqlRecordStore("sqlite+pysqlite:///:memory:")
        self.app.dependency_overrides[get_record_store] = lambda: store

        thread_id = self.client.post(
            "/api/threads/sql", json={"text": "Hi", "delete_password": "pw"}
        ).json()["_id"]
        body = self.client.post(
            "/api/replies/sql",
            json={"thread_id": thread_id, "text": "r", "delete_password": "rpw"},
        ).json()
        self.assertEqual(body["replycount"], 1)

        threads = self.client.get("/api/threads/sql").json()
        self.assertEqual([thread["_id"] for thread in threads], [thread_id])
        response = self.client.request(
            "DELETE",
            "/api/threads/sql",
            json={"thread_id": thread_id, "delete_password": "pw"},
        )
        self.assertEqual(response.text, "success")


if __name__ == "__main__":
    unittest.main()
