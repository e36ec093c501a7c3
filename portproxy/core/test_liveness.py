from unittest.mock import Mock, patch

import pytest
import requests

from portproxy.core.liveness import LivenessProber


@pytest.fixture
def prober():
    return LivenessProber()


class TestProbe:
    @pytest.mark.parametrize("status_code, online", [(200, True), (302, True), (404, True), (499, True), (500, False), (503, False)])
    def test_classifies_by_status(self, prober, status_code, online):
        with patch("portproxy.core.liveness.requests.head", return_value=Mock(status_code=status_code)):
            assert prober.probe(8080) is online

    def test_issues_head_to_backend_root_with_short_timeout(self, prober):
        with patch("portproxy.core.liveness.requests.head", return_value=Mock(status_code=200)) as head:
            prober.probe(8080)
        head.assert_called_once_with("http://localhost:8080/", timeout=2.0, allow_redirects=False)

    @pytest.mark.parametrize(
        "error",
        [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            requests.exceptions.ChunkedEncodingError("reset"),
        ],
    )
    def test_errors_mean_offline(self, prober, error):
        with patch("portproxy.core.liveness.requests.head", side_effect=error):
            assert prober.probe(8080) is False

    def test_custom_host_and_timeout(self):
        prober = LivenessProber(host="127.0.0.1", timeout=0.5)
        with patch("portproxy.core.liveness.requests.head", return_value=Mock(status_code=200)) as head:
            prober.probe(9000)
        head.assert_called_once_with("http://127.0.0.1:9000/", timeout=0.5, allow_redirects=False)


class TestProbeAll:
    def test_reports_port_and_status_per_endpoint(self, prober):
        online_ports = {8080}
        with patch.object(prober, "probe", side_effect=lambda port: port in online_ports):
            result = prober.probe_all({"/app": 8080, "/docs": 9000})

        assert result == {
            "/app": {"port": 8080, "online": True},
            "/docs": {"port": 9000, "online": False},
        }
        assert list(result) == ["/app", "/docs"]

    def test_empty_table(self, prober):
        assert prober.probe_all({}) == {}
