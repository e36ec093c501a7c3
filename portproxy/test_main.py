import json
import sys

import httpx
import pytest
from fastapi.testclient import TestClient

from portproxy import main as cli
from portproxy.config.settings import Settings
from portproxy.ctl import ServiceController
from portproxy import server
from portproxy.server import build_services


@pytest.fixture
def store(tmp_path):
    return tmp_path / "mappings.json"


class TestBuildServices:
    def test_admin_changes_are_visible_to_the_proxy(self, store):
        def backend(request):
            return httpx.Response(200, text=f"{request.url.port} {request.url.path}")

        settings = Settings(mappings_file=store)
        client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
        table, proxy_service, admin_app = build_services(settings, client=client)

        admin = admin_app.test_client()
        proxy = TestClient(proxy_service.app)

        assert proxy.get("/app/x").status_code == 404

        admin.post("/update", json={"action": "add", "endpoint": "app", "port": 8080})
        assert proxy.get("/app/x").text == "8080 /x"

        admin.post("/update", json={"action": "rename", "oldEndpoint": "/app", "newEndpoint": "/web"})
        assert proxy.get("/app/x").status_code == 404
        assert proxy.get("/web/x").text == "8080 /x"

        assert json.loads(store.read_text(encoding="utf-8")) == {"/web": 8080}
        assert table.list() == {"/web": 8080}

    def test_loads_existing_store(self, store):
        store.write_text(json.dumps({"/app": 8080}), encoding="utf-8")
        table, _, _ = build_services(Settings(mappings_file=store))
        assert table.get("/app") == 8080


    def test_serve_has_no_admission_limit(self, store, monkeypatch):
        configs = []

        class FakeServer:
            def __init__(self, config):
                configs.append(config)

            def run(self):
                pass

        class FakeAdmin:
            def __init__(self, app, host, port):
                self.stopped = False

            def start(self):
                pass

            def stop(self):
                self.stopped = True

        monkeypatch.setattr(server.uvicorn, "Server", FakeServer)
        monkeypatch.setattr(server, "AdminServer", FakeAdmin)

        server.serve(Settings(mappings_file=store))

        assert len(configs) == 1
        assert configs[0].limit_concurrency is None

class TestCli:
    def test_run_refuses_corrupt_store(self, store, monkeypatch):
        store.write_text("{broken", encoding="utf-8")
        monkeypatch.setattr(cli, "setup_logging", lambda verbose: None)

        assert cli.main(["run", "--mappings-file", str(store)]) == 1

    def test_list_routes(self, store, capsys):
        store.write_text(json.dumps({"/docs": 9000, "/app": 8080}), encoding="utf-8")

        assert cli.main(["list", "--mappings-file", str(store)]) == 0

        out = capsys.readouterr().out
        assert "/app" in out and ":8080" in out
        assert out.index("/app") < out.index("/docs")

    def test_list_empty(self, store, capsys):
        assert cli.main(["list", "--mappings-file", str(store)]) == 0
        assert "No routes configured" in capsys.readouterr().out

    def test_flags_override_environment(self, store, monkeypatch):
        monkeypatch.setenv("PORT", "5000")
        monkeypatch.setenv("GUI_PORT", "5001")
        monkeypatch.delenv("VERBOSE", raising=False)
        monkeypatch.delenv("DEBUG", raising=False)
        args = cli.build_parser().parse_args(["status", "--port", "6000", "--mappings-file", str(store)])

        settings = cli.resolve_settings(args)

        assert settings.proxy_port == 6000
        assert settings.gui_port == 5001
        assert settings.mappings_file == store
        assert settings.verbose is False


class TestServiceController:
    def test_build_command(self, tmp_path):
        controller = ServiceController(tmp_path / "pp.pid", tmp_path / "pp.log")
        settings = Settings(proxy_port=7000, gui_port=7001, mappings_file=tmp_path / "m.json", verbose=True)

        assert controller.build_command(settings) == [
            sys.executable, "-m", "portproxy.main", "run",
            "--port", "7000",
            "--gui-port", "7001",
            "--mappings-file", str(tmp_path / "m.json"),
            "--verbose",
        ]

    def test_not_running_without_pid_file(self, tmp_path):
        controller = ServiceController(tmp_path / "pp.pid", tmp_path / "pp.log")
        assert controller.get_pid() is None
        assert controller.is_running() is False
        assert controller.stop() is False

    def test_stale_pid_file_is_cleared_on_stop(self, tmp_path):
        pid_file = tmp_path / "pp.pid"
        pid_file.write_text("not-a-pid")
        controller = ServiceController(pid_file, tmp_path / "pp.log")

        assert controller.stop() is False
        assert not pid_file.exists()
