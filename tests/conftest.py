import io
import zipfile

import platformdirs
import pytest
import requests
from requests.structures import CaseInsensitiveDict

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used by the test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object.
    """
    config.addinivalue_line("markers", "unit: fast test of a single component")
    config.addinivalue_line(
        "markers", "integration: test that drives several components together"
    )


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point every platformdirs location used by the application at a temporary directory.

    Creates temp directories for cache, config and logs, sets the XDG_* environment
    variables and patches platformdirs so the version cache and default configuration
    never touch the real user directories.
    """
    base = tmp_path_factory.mktemp("autoupdateplugins")
    cache_dir = base / "cache"
    config_dir = base / "config"
    log_dir = base / "log"

    for path in (cache_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.put = _block_network
    requests.delete = _block_network
    requests.head = _block_network
    requests.patch = _block_network
    requests.options = _block_network
    requests.Session.request = _block_network


def make_zip_bytes(members=None):
    """
    Build an in-memory ZIP archive.

    Parameters:
        members (dict | None): Mapping of member name to text content; a single `plugin.yml` when omitted.

    Returns:
        bytes: The archive content.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in (members or {"plugin.yml": "name: Example\n"}).items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def zip_bytes():
    """Provide the bytes of a small valid JAR/ZIP archive."""
    return make_zip_bytes()


@pytest.fixture
def corrupt_deflated_zip_bytes():
    """
    Provide a deflated archive whose compressed member data has been damaged.

    The central directory is intact, so the archive opens; reading the member fails.
    """
    content = "".join(f"line {i}: {i * i}\n" for i in range(4000))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("plugin.yml", content)
    data = bytearray(buffer.getvalue())
    # Local header (30 bytes) plus the member name precede the compressed data
    for offset in range(60, 200):
        data[offset] ^= 0xFF
    return bytes(data)


@pytest.fixture
def mock_response(mocker):
    """
    Provide a factory that creates configured mock requests.Response objects.

    Returns:
        factory (callable): Called with `status_code`, `headers`, `json_data`, `text` and
        `content`; the mock reports `ok` for 2xx codes and streams `content` through
        `iter_content` in 4-byte chunks.
    """

    def _create_response(
        status_code=200, headers=None, json_data=None, text="", content=b""
    ):
        response = mocker.MagicMock(spec=requests.Response)
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.headers = CaseInsensitiveDict(headers or {})
        response.text = text
        if isinstance(json_data, Exception):
            response.json.side_effect = json_data
        else:
            response.json.return_value = json_data
        response.iter_content.side_effect = lambda chunk_size=1: (
            content[i : i + 4] for i in range(0, len(content), 4)
        )
        return response

    return _create_response


@pytest.fixture
def mock_session(mocker):
    """Provide a MagicMock standing in for a requests.Session, with real header and proxy dicts."""
    session = mocker.MagicMock(spec=requests.Session)
    session.headers = {}
    session.proxies = {}
    session.verify = True
    return session
