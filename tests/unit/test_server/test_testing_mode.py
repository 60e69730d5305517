"""Tests for the testing-mode routes and fault injection."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from percycore import __version__
from percycore.domain.models import TestingState
from percycore.errors import RequestAborted
from percycore.logger import PercyLogger
from percycore.server import create_percy_server
from percycore.server.testing import TEST_SNAPSHOT_HTML

from conftest import FakeAgent, running_server


class TestTestingRoutesRegistration:
    def test_testing_routes_absent_outside_testing_mode(self, client: TestClient) -> None:
        assert client.post("/test/api/reset").status_code == 404
        assert client.get("/test/logs").status_code == 404

    def test_healthcheck_build_is_null_in_testing_mode(self, testing_client: TestClient) -> None:
        resp = testing_client.get("/percy/healthcheck")
        assert resp.json()["build"] is None


class TestErrorFault:
    def test_error_fault_answers_500(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/error", json="/percy/healthcheck")
        assert resp.json() == {"testing": {"api": {"/percy/healthcheck": "error"}}, "success": True}

        resp = testing_client.get("/percy/healthcheck")
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Error: testing"}
        assert resp.headers["X-Percy-Core-Version"] == __version__

    def test_error_fault_only_affects_its_path(self, testing_client: TestClient) -> None:
        testing_client.post("/test/api/error", json="/percy/idle")
        assert testing_client.get("/percy/healthcheck").status_code == 200

    def test_error_fault_skips_the_route(self, testing_client: TestClient, testing_agent) -> None:
        testing_client.post("/test/api/error", json="/percy/snapshot")
        resp = testing_client.post("/percy/snapshot", json={"url": "http://localhost:8000"})
        assert resp.status_code == 500
        assert testing_agent.snapshots == []

    def test_error_command_requires_a_path(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/error", json={"path": "/percy/idle"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestDisconnectFault:
    def test_disconnect_fault_drops_the_request(self, testing_client: TestClient) -> None:
        testing_client.post("/test/api/disconnect", json="/percy/idle")
        with pytest.raises(RequestAborted):
            testing_client.get("/percy/idle")

    def test_later_command_for_a_path_wins(self, testing_client: TestClient) -> None:
        testing_client.post("/test/api/disconnect", json="/percy/idle")
        resp = testing_client.post("/test/api/error", json="/percy/idle")
        assert resp.json()["testing"] == {"api": {"/percy/idle": "error"}}
        assert testing_client.get("/percy/idle").status_code == 500

    @pytest.mark.asyncio
    async def test_disconnect_fault_closes_the_socket_without_a_response(
        self, testing_agent: FakeAgent, percy_logger: PercyLogger, dom_script: Path
    ) -> None:
        app = create_percy_server(testing_agent, log=percy_logger, dom_path=dom_script)
        async with running_server(app) as port:
            async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}", trust_env=False) as http:
                resp = await http.post("/test/api/disconnect", json="/percy/idle")
                assert resp.status_code == 200

            reader, writer = await asyncio.open_connection("127.0.0.1", port)
            try:
                writer.write(b"GET /percy/idle HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n")
                await writer.drain()
                try:
                    received = await asyncio.wait_for(reader.read(), 5)
                except ConnectionResetError:
                    received = b""
            finally:
                writer.close()
        assert received == b""
        assert testing_agent.idle_calls == 0


class TestVersionCommand:
    def test_version_override(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/version", json="0.0.1")
        # The command's own response still carries the previous version
        assert resp.headers["X-Percy-Core-Version"] == __version__
        assert resp.json()["testing"] == {"version": "0.0.1"}

        resp = testing_client.get("/percy/healthcheck")
        assert resp.headers["X-Percy-Core-Version"] == "0.0.1"

    def test_version_false_removes_header(self, testing_client: TestClient) -> None:
        testing_client.post("/test/api/version", json=False)
        resp = testing_client.get("/percy/healthcheck")
        assert "X-Percy-Core-Version" not in resp.headers
        assert resp.headers["Access-Control-Expose-Headers"] == "*, X-Percy-Core-Version"

    def test_numeric_version_is_stored_as_text(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/version", json=2)
        assert resp.status_code == 200
        assert resp.json()["testing"] == {"version": "2"}
        assert testing_client.get("/percy/healthcheck").headers["X-Percy-Core-Version"] == "2"

    def test_true_version_is_stored_as_text(self, testing_client: TestClient) -> None:
        testing_client.post("/test/api/version", json=True)
        assert testing_client.get("/percy/healthcheck").headers["X-Percy-Core-Version"] == "true"

    def test_invalid_version_is_rejected(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/version", json={"major": 1})
        assert resp.status_code == 400
        assert testing_client.get("/percy/healthcheck").headers["X-Percy-Core-Version"] == __version__


class TestResetCommand:
    def test_reset_clears_faults_and_logs(self, testing_client: TestClient, percy_logger: PercyLogger) -> None:
        testing_client.post("/test/api/version", json=False)
        testing_client.post("/test/api/error", json="/percy/healthcheck")
        percy_logger.log("sdk", "info", "before reset")

        resp = testing_client.post("/test/api/reset")
        assert resp.json() == {"testing": {}, "success": True}
        assert len(percy_logger.messages) == 0

        resp = testing_client.get("/percy/healthcheck")
        assert resp.status_code == 200
        assert resp.headers["X-Percy-Core-Version"] == __version__

    def test_unknown_command_is_404(self, testing_client: TestClient) -> None:
        resp = testing_client.post("/test/api/explode")
        assert resp.status_code == 404


class TestLogsAndSnapshotPage:
    def test_logs_returns_buffer(self, testing_client: TestClient, percy_logger: PercyLogger) -> None:
        percy_logger.log("sdk", "debug", "hidden but buffered")
        resp = testing_client.get("/test/logs")
        body = resp.json()
        assert body["success"] is True
        assert [m["message"] for m in body["logs"]] == ["hidden but buffered"]

    def test_snapshot_page(self, testing_client: TestClient) -> None:
        resp = testing_client.get("/test/snapshot")
        assert resp.status_code == 200
        assert resp.text == TEST_SNAPSHOT_HTML
        assert resp.headers["content-type"].startswith("text/html")


class TestTestingState:
    def test_defaults_serialize_empty(self) -> None:
        assert TestingState().to_json() == {}

    def test_fault_lookup(self) -> None:
        state = TestingState(api={"/percy/idle": "disconnect"})
        assert state.fault_for("/percy/idle") == "disconnect"
        assert state.fault_for("/percy/healthcheck") is None

    def test_scalar_versions_become_strings(self) -> None:
        assert TestingState(version=3).version == "3"
        assert TestingState(version=1.5).version == "1.5"
        assert TestingState(version=True).version == "true"
        assert TestingState(version=False).version is False
