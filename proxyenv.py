######################################################################################################################

"""Proxy discovery from the environment and a transport that applies it per request."""

######################################################################################################################

import typing as T  # isort: split

import logging
import os
import threading

import httpx

######################################################################################################################

L = logging.getLogger("hubhttp.proxy")

_PROXY_ENV_VARS = ("http_proxy", "HTTP_PROXY")

ProxyResolver = T.Callable[[], T.Optional[httpx.URL]]
TransportFactory = T.Callable[..., httpx.BaseTransport]

######################################################################################################################


class InvalidProxyAddress(httpx.ProxyError):
    """The configured proxy value cannot be parsed as a URL, not even with an http:// prefix."""

    def __init__(self, proxy: str, cause: Exception):
        super().__init__(f"invalid proxy address {proxy!r}: {cause}")
        self.proxy = proxy
        self.cause = cause


def proxy_from_environment(environ: T.Optional[T.Mapping[str, str]] = None) -> T.Optional[httpx.URL]:
    """Proxy URL from `http_proxy` / `HTTP_PROXY`, or None if neither is set.

    Values without a scheme (`myproxy:8080`) are read as `http://myproxy:8080`.

    Raises:
        InvalidProxyAddress: The value does not parse, with or without the prefix.
    """

    env = os.environ if environ is None else environ

    proxy = ""
    for name in _PROXY_ENV_VARS:
        proxy = env.get(name) or ""
        if proxy:
            break

    if not proxy:
        return None

    proxy_url: T.Optional[httpx.URL] = None
    error: T.Optional[httpx.InvalidURL] = None
    try:
        proxy_url = httpx.URL(proxy)

    except httpx.InvalidURL as exc:
        error = exc

    if proxy_url is None or not proxy_url.scheme.startswith("http"):
        try:
            return httpx.URL(f"http://{proxy}")

        except httpx.InvalidURL:
            pass

    if error is not None:
        raise InvalidProxyAddress(proxy, error) from error

    return proxy_url


######################################################################################################################


class EnvProxyTransport(httpx.BaseTransport):
    """Transport that asks `proxy_resolver` for a proxy on every request.

    Requests are delegated to one underlying transport per distinct proxy URL (plus one
    for direct connections), built with `transport_factory(proxy=...)` on first use.
    """

    def __init__(
        self,
        proxy_resolver: ProxyResolver = proxy_from_environment,
        transport_factory: TransportFactory = httpx.HTTPTransport,
    ):
        self.proxy_resolver = proxy_resolver
        self.transport_factory = transport_factory
        self._transports: T.Dict[T.Optional[str], httpx.BaseTransport] = {}
        self._lock = threading.Lock()

    def transport_for(self, proxy: T.Optional[httpx.URL]) -> httpx.BaseTransport:
        key = str(proxy) if proxy is not None else None
        with self._lock:
            transport = self._transports.get(key)
            if transport is None:
                L.debug(f"New transport for proxy: {key or 'direct'}")
                transport = self.transport_factory(proxy=proxy)
                self._transports[key] = transport

        return transport

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        try:
            proxy = self.proxy_resolver()

        except InvalidProxyAddress as exc:
            exc.request = request
            raise

        return self.transport_for(proxy).handle_request(request)

    def close(self) -> None:
        with self._lock:
            transports = list(self._transports.values())
            self._transports.clear()

        for transport in transports:
            transport.close()


######################################################################################################################
