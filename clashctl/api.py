"""Client for the Clash external-controller RESTful API."""

from __future__ import annotations

import http.client
import json
import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import IO, Any, Generic, TypeVar
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urljoin, urlsplit
from urllib.request import Request, urlopen

from .errors import (
    BadResponseEncoding,
    BadResponseFormat,
    FailedResponse,
    OtherError,
    RequestError,
    UrlParseError,
)
from .models import (
    Config,
    Connections,
    Delay,
    Log,
    Proxies,
    Proxy,
    Rules,
    Traffic,
    Version,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_SCHEME = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*\Z")
_HOST_SCHEMES = {"http", "https", "ws", "wss", "ftp"}
_URL_SAFE = "!#$%&'()*+,/:;=?@[]~"


def _normalize_base(url: str) -> str:
    """Validate a base URL and make sure it ends with a slash."""
    if not url.endswith("/"):
        url += "/"
    try:
        parts = urlsplit(url)
        if not _SCHEME.match(parts.scheme):
            raise ValueError("missing scheme")
        if parts.scheme.lower() in _HOST_SCHEMES:
            if not parts.hostname:
                raise ValueError("missing host")
            _ = parts.port
    except ValueError as exc:
        raise UrlParseError() from exc
    return url


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise BadResponseFormat(exc) from exc


@dataclass(frozen=True)
class ClashBuilder:
    """Collects the settings of a Clash client before building it."""

    url: str
    secret: str | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", _normalize_base(self.url))

    def with_secret(self, secret: str | None) -> ClashBuilder:
        return ClashBuilder(self.url, secret, self.timeout)

    def with_timeout(self, timeout: float | None) -> ClashBuilder:
        """Set the timeout of one-shot requests, in seconds."""
        return ClashBuilder(self.url, self.secret, timeout)

    def build(self) -> Clash:
        return Clash(self.url, secret=self.secret, timeout=self.timeout)


class Clash:
    """Talks to the RESTful API of a running Clash instance."""

    def __init__(self, url: str, secret: str | None = None,
                 timeout: float | None = None) -> None:
        self.url = _normalize_base(url)
        self.secret = secret
        self.timeout = timeout
        logger.debug("Url of clash RESTful API: %s", self.url)

    def __repr__(self) -> str:
        return f"Clash(url={self.url!r}, timeout={self.timeout!r})"

    @classmethod
    def builder(cls, url: str) -> ClashBuilder:
        return ClashBuilder(url)

    # ------------------------------------------------------------ transport

    def _join(self, endpoint: str) -> str:
        return quote(urljoin(self.url, endpoint), safe=_URL_SAFE)

    def _open(self, endpoint: str, method: str, body: str | None,
              use_timeout: bool) -> http.client.HTTPResponse:
        headers = {}
        if self.secret is not None:
            headers["Authorization"] = f"Bearer {self.secret}"
        request = Request(
            self._join(endpoint),
            data=None if body is None else body.encode("utf-8"),
            method=method,
            headers=headers,
        )
        try:
            if use_timeout and self.timeout is not None:
                response = urlopen(request, timeout=self.timeout)
            else:
                response = urlopen(request)
        except HTTPError as exc:
            exc.close()
            raise FailedResponse(exc.code) from None
        except (URLError, OSError, ValueError, http.client.HTTPException) as exc:
            raise RequestError(exc) from exc
        if response.status >= 400:
            response.close()
            raise FailedResponse(response.status)
        return response

    def oneshot_req_with_body(self, endpoint: str, method: str,
                              body: str | None = None) -> str:
        """Send a request and return the whole response body as text."""
        logger.debug("Body: %r", body)
        with self._open(endpoint, method, body, use_timeout=True) as response:
            try:
                raw = response.read()
            except (OSError, http.client.HTTPException) as exc:
                raise RequestError(exc) from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BadResponseEncoding() from exc
        logger.debug("Received response: %s", text)
        return text

    def oneshot_req(self, endpoint: str, method: str) -> str:
        return self.oneshot_req_with_body(endpoint, method, None)

    def longhaul_req(self, endpoint: str, method: str,
                     parse: Callable[[Any], _T] | None = None) -> LongHaul[_T]:
        """Open a streaming request; items arrive one JSON document per line."""
        response = self._open(endpoint, method, None, use_timeout=False)
        return LongHaul(response, parse)

    def get(self, endpoint: str) -> Any:
        return _decode_json(self.oneshot_req(endpoint, "GET"))

    def delete(self, endpoint: str) -> None:
        self.oneshot_req(endpoint, "DELETE")

    def put(self, endpoint: str, body: str | None = None) -> Any:
        return _decode_json(self.oneshot_req_with_body(endpoint, "PUT", body))

    # ------------------------------------------------------------ endpoints

    def get_version(self) -> Version:
        return Version.from_dict(self.get("version"))

    def get_configs(self) -> Config:
        return Config.from_dict(self.get("configs"))

    def reload_configs(self, force: bool, path: str) -> None:
        """Reload base configs from an absolute path; force also changes ports."""
        body = json.dumps({"path": path}, separators=(",", ":"))
        logger.debug("%s", body)
        self.oneshot_req_with_body("configs?force" if force else "configs", "PUT", body)

    def get_proxies(self) -> Proxies:
        return Proxies.from_dict(self.get("proxies"))

    def get_rules(self) -> Rules:
        return Rules.from_dict(self.get("rules"))

    def get_proxy(self, proxy: str) -> Proxy:
        return Proxy.from_dict(self.get(f"proxies/{proxy}"))

    def get_connections(self) -> Connections:
        return Connections.from_dict(self.get("connections"))

    def close_connections(self) -> None:
        self.delete("connections")

    def close_one_connection(self, conn_id: str) -> None:
        self.delete(f"connections/{conn_id}")

    def get_traffic(self) -> LongHaul[Traffic]:
        """Stream real-time traffic; lasts until closed or disconnected."""
        return self.longhaul_req("traffic", "GET", Traffic.from_dict)

    def get_log(self) -> LongHaul[Log]:
        """Stream real-time logs; lasts until closed or disconnected."""
        return self.longhaul_req("logs", "GET", Log.from_dict)

    def get_proxy_delay(self, proxy: str, test_url: str, timeout: int) -> Delay:
        """Test the delay of a proxy against test_url, timeout in milliseconds."""
        name = quote(proxy, safe="")
        target = quote(test_url, safe="")
        return Delay.from_dict(
            self.get(f"proxies/{name}/delay?url={target}&timeout={timeout}")
        )

    def set_proxygroup_selected(self, group: str, proxy: str) -> None:
        body = json.dumps({"name": proxy}, separators=(",", ":"), ensure_ascii=False)
        self.oneshot_req_with_body(f"proxies/{group}", "PUT", body)


class LongHaul(Generic[_T]):
    """Iterator over a line-delimited JSON stream."""

    def __init__(self, stream: IO[bytes],
                 parse: Callable[[Any], _T] | None = None) -> None:
        self._stream = stream
        self._parse = parse

    def next_raw(self) -> str | None:
        """Return the next line including its newline, or None at the end."""
        try:
            line = self._stream.readline()
        except (OSError, ValueError, http.client.HTTPException) as exc:
            raise OtherError(str(exc)) from exc
        if not line:
            return None
        try:
            return line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OtherError(str(exc)) from exc

    def next_item(self) -> _T | None:
        """Return the next decoded item, or None at the end of the stream."""
        raw = self.next_raw()
        if raw is None:
            return None
        value = _decode_json(raw)
        return value if self._parse is None else self._parse(value)

    def close(self) -> None:
        self._stream.close()

    def __iter__(self) -> Iterator[_T]:
        return self

    def __next__(self) -> _T:
        item = self.next_item()
        if item is None:
            raise StopIteration
        return item

    def __enter__(self) -> LongHaul[_T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()