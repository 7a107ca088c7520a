"""
HTTP Fetcher

Thin wrapper around a requests Session that applies the configured proxy,
TLS verification mode and extra headers to every call, and counts requests
for the run report. It never retries; callers decide what a failure means.
"""

import importlib.metadata
import os
from typing import Any, Dict, Optional

import requests
import urllib3

from autoupdateplugins.config import (
    get_config_bool,
    get_config_int,
    get_config_list,
    get_config_mapping,
)
from autoupdateplugins.constants import (
    APP_NAME,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PROXY_HOST,
    DEFAULT_PROXY_PORT,
    DEFAULT_PROXY_TYPE,
    DEFAULT_REQUEST_TIMEOUT,
)
from autoupdateplugins.exceptions import NetworkError
from autoupdateplugins.log_utils import logger

_USER_AGENT_CACHE: Optional[str] = None

_PROXY_SCHEMES = {
    "HTTP": "http",
    "HTTPS": "http",
    "SOCKS": "socks5",
    "SOCKS5": "socks5",
}


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `autoupdateplugins/{version}`, where `{version}` is the installed package version or `unknown`.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"
        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


def build_proxies(config: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """
    Translate the `proxy` configuration block into a requests proxies mapping.

    Parameters:
        config (Dict[str, Any]): Global configuration; reads `proxy.type`, `proxy.host` and `proxy.port`.

    Returns:
        Optional[Dict[str, str]]: Proxies for both schemes, or `None` for DIRECT or an unknown type.
    """
    proxy = get_config_mapping(config, "proxy")
    proxy_type = str(proxy.get("type", DEFAULT_PROXY_TYPE)).strip().upper()
    if proxy_type == "DIRECT":
        return None

    scheme = _PROXY_SCHEMES.get(proxy_type)
    if scheme is None:
        logger.warning(f"Unknown proxy type {proxy_type!r}; connecting directly")
        return None

    host = str(proxy.get("host", DEFAULT_PROXY_HOST)).strip()
    port = get_config_int(proxy, "port", DEFAULT_PROXY_PORT)
    proxy_url = f"{scheme}://{host}:{port}"
    return {"http": proxy_url, "https": proxy_url}


def build_headers(config: Dict[str, Any]) -> Dict[str, str]:
    """
    Collect the headers attached to every request.

    Starts from the default User-Agent and applies each `{name, value}` item of
    `setRequestProperty` in order, so configured headers override the default.
    """
    headers = {"User-Agent": get_user_agent()}
    for item in get_config_list(config, "setRequestProperty"):
        if not isinstance(item, dict) or item.get("name") is None:
            logger.warning(f"Ignoring malformed setRequestProperty item: {item!r}")
            continue
        headers[str(item["name"])] = str(item.get("value", ""))
    return headers


class HttpFetcher:
    """
    Issues GET and HEAD requests with the configured proxy, TLS mode and headers.

    Every call increments `request_count`, whatever its outcome. Transport failures
    and non-success statuses are raised as NetworkError.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
        timeout: Any = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Build a fetcher from the global configuration.

        Parameters:
            config (Dict[str, Any]): Global configuration (`proxy`, `sslVerify`, `setRequestProperty`).
            session (Optional[requests.Session]): Session to use; a new one is created if omitted.
            timeout: requests timeout, a number or a (connect, read) tuple.
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.request_count = 0

        self.session.headers.update(build_headers(config))

        proxies = build_proxies(config)
        if proxies:
            self.session.proxies.update(proxies)
            logger.debug(f"Using proxy {proxies['https']}")

        self.verify_tls = get_config_bool(config, "sslVerify", True)
        if not self.verify_tls:
            self.session.verify = False
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            logger.warning(
                "TLS certificate verification is DISABLED (sslVerify: false); "
                "downloads are not protected against interception"
            )

    def reset_request_count(self) -> None:
        self.request_count = 0

    def request(
        self, url: str, method: str = "GET", stream: bool = False
    ) -> requests.Response:
        """
        Send a single request.

        Parameters:
            url (str): Target URL.
            method (str): "GET" or "HEAD".
            stream (bool): Defer downloading the body (GET only).

        Returns:
            requests.Response: A response with a 2xx status. Streamed responses must be closed by the caller.

        Raises:
            NetworkError: On transport failure or a non-success status.
        """
        self.request_count += 1
        method = method.upper()
        try:
            response = self.session.request(
                method,
                url,
                stream=stream,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise NetworkError(f"{method} request failed", url=url, details=str(e)) from e

        if not response.ok:
            status_code = response.status_code
            response.close()
            raise NetworkError(
                f"{method} request returned HTTP {status_code}",
                url=url,
                status_code=status_code,
            )
        return response

    def head(self, url: str) -> requests.Response:
        return self.request(url, method="HEAD")

    def get_text(self, url: str) -> str:
        """Fetch `url` and return its decoded body."""
        response = self.request(url)
        try:
            return response.text
        finally:
            response.close()

    def get_json(self, url: str) -> Any:
        """
        Fetch `url` and decode its body as JSON.

        Raises:
            NetworkError: On request failure or an undecodable body.
        """
        response = self.request(url)
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                "Response is not valid JSON", url=url, details=str(e)
            ) from e
        finally:
            response.close()

    def download_to(
        self, url: str, target_path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> int:
        """
        Stream `url` into `target_path`.

        The parent directory is created if needed. A partially written file is removed
        before the error is raised.

        Returns:
            int: Number of bytes written.

        Raises:
            NetworkError: On request failure, a broken stream, or a write error.
        """
        response = self.request(url, stream=True)
        written = 0
        try:
            parent = os.path.dirname(target_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(target_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        except (requests.RequestException, OSError) as e:
            _remove_partial(target_path)
            raise NetworkError("Download failed", url=url, details=str(e)) from e
        finally:
            response.close()

        logger.debug(f"Downloaded {written} bytes from {url} to {target_path}")
        return written


def _remove_partial(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.error(f"Could not remove partial download {path}: {e}")
