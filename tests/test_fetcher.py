"""
Tests for the HTTP fetcher: proxy and header configuration, TLS mode,
request accounting and streamed downloads.
"""

import os

import pytest
import requests

from autoupdateplugins.download import fetcher as fetcher_module
from autoupdateplugins.download.fetcher import (
    HttpFetcher,
    build_headers,
    build_proxies,
    get_user_agent,
)
from autoupdateplugins.exceptions import NetworkError

pytestmark = [pytest.mark.unit]


class TestBuildProxies:
    def test_direct_by_default(self):
        assert build_proxies({}) is None
        assert build_proxies({"proxy": {"type": "DIRECT"}}) is None

    def test_http_proxy(self):
        proxies = build_proxies({"proxy": {"type": "HTTP", "host": "10.0.0.1", "port": 3128}})
        assert proxies == {"http": "http://10.0.0.1:3128", "https": "http://10.0.0.1:3128"}

    def test_socks_proxy_with_string_port(self):
        proxies = build_proxies({"proxy": {"type": "socks", "host": "localhost", "port": "1080"}})
        assert proxies["https"] == "socks5://localhost:1080"

    def test_unknown_type_connects_directly(self):
        assert build_proxies({"proxy": {"type": "CARRIER_PIGEON"}}) is None

    def test_defaults_for_host_and_port(self):
        proxies = build_proxies({"proxy": {"type": "HTTP"}})
        assert proxies["http"] == "http://127.0.0.1:7890"


class TestBuildHeaders:
    def test_default_user_agent(self):
        headers = build_headers({})
        assert headers["User-Agent"] == get_user_agent()
        assert headers["User-Agent"].startswith("autoupdateplugins/")

    def test_configured_headers_override_default(self):
        headers = build_headers(
            {
                "setRequestProperty": [
                    {"name": "User-Agent", "value": "Mozilla/5.0"},
                    {"name": "Accept", "value": "application/json"},
                ]
            }
        )
        assert headers["User-Agent"] == "Mozilla/5.0"
        assert headers["Accept"] == "application/json"

    def test_malformed_items_are_skipped(self):
        headers = build_headers({"setRequestProperty": ["nope", {"value": "x"}]})
        assert list(headers) == ["User-Agent"]


class TestHttpFetcher:
    def test_session_configuration(self, mock_session):
        config = {
            "proxy": {"type": "HTTP", "host": "proxy", "port": 8080},
            "setRequestProperty": [{"name": "X-Test", "value": "1"}],
        }

        fetcher = HttpFetcher(config, session=mock_session)

        assert mock_session.headers["X-Test"] == "1"
        assert mock_session.proxies["https"] == "http://proxy:8080"
        assert fetcher.verify_tls is True
        assert mock_session.verify is True

    def test_insecure_mode_disables_verification(self, mock_session, mocker):
        disable_warnings = mocker.patch.object(fetcher_module.urllib3, "disable_warnings")

        fetcher = HttpFetcher({"sslVerify": "false"}, session=mock_session)

        assert fetcher.verify_tls is False
        assert mock_session.verify is False
        disable_warnings.assert_called_once()

    def test_request_follows_redirects_and_counts(self, mock_session, mock_response):
        mock_session.request.return_value = mock_response(200)
        fetcher = HttpFetcher({}, session=mock_session)

        fetcher.head("https://example.com/a.jar")

        assert fetcher.request_count == 1
        args, kwargs = mock_session.request.call_args
        assert args == ("HEAD", "https://example.com/a.jar")
        assert kwargs["allow_redirects"] is True

    def test_failed_requests_are_counted(self, mock_session):
        mock_session.request.side_effect = requests.ConnectionError("refused")
        fetcher = HttpFetcher({}, session=mock_session)

        with pytest.raises(NetworkError):
            fetcher.get_text("https://example.com")
        with pytest.raises(NetworkError):
            fetcher.get_text("https://example.com")

        assert fetcher.request_count == 2
        fetcher.reset_request_count()
        assert fetcher.request_count == 0

    def test_error_status_raises_network_error(self, mock_session, mock_response):
        response = mock_response(404)
        mock_session.request.return_value = response
        fetcher = HttpFetcher({}, session=mock_session)

        with pytest.raises(NetworkError) as exc_info:
            fetcher.get_json("https://api.example.com/missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == "https://api.example.com/missing"
        response.close.assert_called_once()

    def test_get_json_rejects_invalid_body(self, mock_session, mock_response):
        mock_session.request.return_value = mock_response(200, json_data=ValueError("bad json"))
        fetcher = HttpFetcher({}, session=mock_session)

        with pytest.raises(NetworkError, match="not valid JSON"):
            fetcher.get_json("https://api.example.com/x")

    def test_download_to_writes_file(self, mock_session, mock_response, tmp_path):
        payload = b"0123456789" * 100
        mock_session.request.return_value = mock_response(200, content=payload)
        fetcher = HttpFetcher({}, session=mock_session)
        target = tmp_path / "temp" / "plugin.jar"

        written = fetcher.download_to("https://example.com/plugin.jar", str(target))

        assert written == 1000
        assert target.read_bytes() == payload
        assert mock_session.request.call_args.kwargs["stream"] is True

    def test_download_to_removes_partial_file(self, mock_session, mock_response, tmp_path):
        response = mock_response(200)

        def _broken_stream(chunk_size=1):
            yield b"partial"
            raise requests.ConnectionError("reset by peer")

        response.iter_content.side_effect = _broken_stream
        mock_session.request.return_value = response
        fetcher = HttpFetcher({}, session=mock_session)
        target = tmp_path / "plugin.jar"

        with pytest.raises(NetworkError, match="Download failed"):
            fetcher.download_to("https://example.com/plugin.jar", str(target))

        assert not os.path.exists(target)
        response.close.assert_called_once()
