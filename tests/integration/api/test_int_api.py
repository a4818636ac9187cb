# tests/integration/api/test_int_api.py - v3
"""Integration tests for the HTTP API.

Covers: api/server.py, api/sse.py, api/container.py end to end with the
real LLMReasoner, EntitlementManager and SimulatedPaymentClient.
No network required.
"""

from __future__ import annotations


def _run_stream(client, sse, goal: str = "Build a todo app") -> list[dict]:
    with client.stream("POST", "/api/agent/run/stream", json={"goal": goal}) as resp:
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        body = "".join(resp.iter_text())
    return sse(body)


def _phases(events: list[dict]) -> list[str]:
    return [e["data"]["currentPhase"] for e in events if e["kind"] == "phase_changed"]


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["payment_provider"] == "simulated"
        assert body["store_backend"] == "memory"
        assert body["active_runs"] == 0


class TestRunStreaming:

    def test_free_run(self, client, sse, script_llm):
        script_llm()
        events = _run_stream(client, sse)

        assert events[0]["kind"] == "run_started"
        assert events[0]["data"]["goal"] == "Build a todo app"
        assert _phases(events) == ["THINK", "RETRIEVE", "DECIDE", "BUILD", "COMPLETE"]
        assert [e["seq"] for e in events] == list(range(1, len(events) + 1))
        assert events[-1]["kind"] == "complete"
        assert events[-1]["data"]["totalCost"] == 0

        artifact = next(e for e in events if e["kind"] == "artifact")
        assert artifact["data"]["name"] == "todo-app"

        run_id = events[0]["runId"]
        run = client.get(f"/api/agent/run/{run_id}").json()
        assert run["status"] == "completed"

    def test_paid_run_then_entitled_run(self, client, sse, script_llm):
        script_llm(["voyage", "mongodb"])
        events = _run_stream(client, sse)

        assert _phases(events) == [
            "THINK", "RETRIEVE", "DECIDE", "PAY", "VERIFY", "UNLOCK", "BUILD", "COMPLETE",
        ]
        payments = [e["data"] for e in events if e["kind"] == "payment"]
        assert [p["service"] for p in payments] == ["voyage", "mongodb"]
        assert all(p["txHash"].startswith("sim-0x") and p["simulated"] for p in payments)
        assert events[-1]["data"]["totalCost"] == 1.0
        assert events[-1]["data"]["servicesUnlocked"] == 2

        status = client.get("/api/entitlements/status").json()
        assert status["voyage"]["active"] is True
        assert status["mongodb"]["active"] is True
        assert status["cdp"]["active"] is False

        script_llm(["voyage", "mongodb"])
        second = _run_stream(client, sse)
        assert not any(e["kind"] == "payment" for e in second)
        assert "PAY" not in _phases(second)
        assert second[-1]["data"]["totalCost"] == 0

        assert len(client.get("/api/wallet/transactions").json()) == 2
        assert len(client.get("/api/projects").json()) == 2

    def test_failing_backend_ends_with_error(self, client, sse, mock_llm):
        mock_llm.set_responses("not json at all")
        events = _run_stream(client, sse)

        assert _phases(events) == ["THINK", "ERROR"]
        assert events[-1]["kind"] == "error"
        assert events[-1]["data"]["phase"] == "THINK"
        run = client.get(f"/api/agent/run/{events[0]['runId']}").json()
        assert run["status"] == "failed"


class TestRunAttach:

    def test_start_then_attach_and_resume(self, client, sse, script_llm):
        script_llm()
        resp = client.post("/api/agent/run", json={"goal": "Build a todo app"})
        assert resp.status_code == 200
        run_id = resp.json()["runId"]
        assert resp.json()["status"] == "pending"

        full = sse(client.get(f"/api/agent/run/{run_id}/stream").text)
        assert full[0]["kind"] == "run_started"
        assert full[-1]["kind"] == "complete"

        tail = sse(
            client.get(
                f"/api/agent/run/{run_id}/stream", headers={"Last-Event-ID": "3"}
            ).text
        )
        assert [e["seq"] for e in tail] == [e["seq"] for e in full[3:]]

        after = sse(client.get(f"/api/agent/run/{run_id}/stream?after=5").text)
        assert after[0]["seq"] == 6

    def test_history_logs_and_list(self, client, sse, script_llm):
        script_llm()
        run_id = _run_stream(client, sse)[0]["runId"]

        history = client.get(f"/api/agent/run/{run_id}/history").json()
        assert [h["phase"] for h in history][-1] == "COMPLETE"

        logs = client.get(f"/api/agent/run/{run_id}/logs").json()
        assert logs and all(entry["run_id"] == run_id for entry in logs)

        runs = client.get("/api/agent/runs").json()
        assert run_id in [r["id"] for r in runs]

    def test_cancel_finished_run_is_unchanged(self, client, sse, script_llm):
        script_llm()
        run_id = _run_stream(client, sse)[0]["runId"]
        resp = client.post(f"/api/agent/run/{run_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"


class TestErrors:

    def test_unknown_run_is_404(self, client):
        resp = client.get("/api/agent/run/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Run not found: nope"}

    def test_unknown_run_stream_is_404(self, client):
        assert client.get("/api/agent/run/nope/stream").status_code == 404

    def test_empty_goal_is_400(self, client):
        resp = client.post("/api/agent/run", json={"goal": ""})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request"

    def test_missing_body_is_400(self, client):
        assert client.post("/api/agent/run").status_code == 400

    def test_unknown_transaction_is_404(self, client):
        resp = client.get("/api/wallet/transactions/0xdead")
        assert resp.status_code == 404
        assert "error" in resp.json()

    def test_unknown_project_is_404(self, client):
        assert client.get("/api/projects/nope").status_code == 404


class TestEntitlementRoutes:

    def _run_id(self, client, sse) -> str:
        return _run_stream(client, sse)[0]["runId"]

    def test_subscribe_verify_and_reset(self, client, sse):
        run_id = self._run_id(client, sse)

        first = client.post("/api/entitlements/subscribe/cdp", json={"runId": run_id})
        assert first.status_code == 200
        body = first.json()
        assert body["tx_hash"].startswith("sim-0x")
        assert body["entitlement"]["service"] == "cdp"

        second = client.post("/api/entitlements/subscribe/cdp", json={"runId": run_id}).json()
        assert second["tx_hash"] == ""
        assert second["entitlement"]["id"] == body["entitlement"]["id"]

        verified = client.post(
            "/api/entitlements/verify", json={"token": body["entitlement"]["token"]}
        ).json()
        assert verified["valid"] is True
        assert verified["service"] == "cdp"
        assert verified["runId"] == run_id

        listed = client.get(f"/api/entitlements?runId={run_id}").json()
        assert len(listed) == 1
        assert listed[0]["is_expired"] is False

        reset = client.delete("/api/entitlements/reset").json()
        assert reset == {"deactivated": 1}
        assert client.get("/api/entitlements/status").json()["cdp"]["active"] is False

    def test_subscribe_unknown_service_is_400(self, client, sse):
        run_id = self._run_id(client, sse)
        resp = client.post("/api/entitlements/subscribe/netflix", json={"runId": run_id})
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_subscribe_unknown_run_is_404(self, client):
        resp = client.post("/api/entitlements/subscribe/cdp", json={"runId": "nope"})
        assert resp.status_code == 404

    def test_verify_bad_token(self, client):
        body = client.post("/api/entitlements/verify", json={"token": "garbage"}).json()
        assert body["valid"] is False
        assert body["error"]

    def test_prices(self, client):
        assert client.get("/api/entitlements/prices").json() == {
            "voyage": 0.5, "mongodb": 0.5, "cdp": 0.5,
        }


class TestWalletAndMemories:

    def test_wallet(self, client):
        body = client.get("/api/wallet").json()
        assert body["address"] == "0xagent"
        assert body["provider"] == "simulated"
        assert body["is_demo"] is True

    def test_memory_crud_and_search(self, client):
        created = client.post(
            "/api/memories",
            json={"text": "React todo app with local storage", "metadata": {"tag": "react"}},
        )
        assert created.status_code == 201
        assert created.json()["dimensions"] == 64
        client.post("/api/memories", json={"text": "Solidity token contract"})

        assert client.get("/api/memories/count").json() == {"count": 2}
        assert len(client.get("/api/memories").json()) == 2

        hits = client.post(
            "/api/memories/search", json={"query": "todo app", "limit": 1}
        ).json()
        assert len(hits) == 1
        assert "todo" in hits[0]["text"]
        assert 0.0 <= hits[0]["score"] <= 1.0

    def test_memory_search_validation(self, client):
        assert client.post("/api/memories/search", json={"query": ""}).status_code == 400

    def test_retrieve_uses_stored_memories(self, client, sse, script_llm):
        client.post("/api/memories", json={"text": "Build a todo app in React"})
        script_llm()
        events = _run_stream(client, sse)
        retrieved = next(e for e in events if e["kind"] == "memories_retrieved")
        assert len(retrieved["data"]["memories"]) == 1
        assert events[-1]["data"]["memoriesUsed"] == 1
