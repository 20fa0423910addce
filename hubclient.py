########################################################################################################################

import typing as T  # isort: split

import functools
import logging
import os

import httpx

from proxyenv import EnvProxyTransport, ProxyResolver, proxy_from_environment
from verbosetransport import VerboseTransport, is_terminal, transport_set_logger

########################################################################################################################

L = logging.getLogger("hubclient")
transport_set_logger(L)

TEST_HOST_ENV = "HUB_TEST_HOST"
VERBOSE_ENV = "HUB_VERBOSE"

########################################################################################################################


def env_flag(env: T.Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_test_host(test_host: str) -> T.Optional[httpx.URL]:
    if not test_host:
        return None

    try:
        return httpx.URL(test_host)

    except httpx.InvalidURL as exc:
        L.warning(f"Ignoring unparseable test host {test_host!r}: {exc}")
        return None


def new_http_client(
    test_host: str,
    verbose: bool,
    *,
    transport: T.Optional[httpx.BaseTransport] = None,
    proxy_resolver: T.Optional[ProxyResolver] = None,
    stream: T.Optional[T.TextIO] = None,
    terminal_check: T.Callable[[T.Any], bool] = is_terminal,
) -> httpx.Client:
    """
    Build the HTTP client used for all API calls.

    Args:
        test_host: Scheme and host every request is sent to instead of its own ("" = no override)
        verbose: Dump requests and responses to stderr
        transport: Base transport, defaults to one honouring http_proxy / HTTP_PROXY
        proxy_resolver: Proxy lookup for the default base transport
        stream: Where the trace goes, defaults to sys.stderr
        terminal_check: Decides whether the trace stream gets colour codes
    """

    if transport is None:
        transport = EnvProxyTransport(proxy_resolver or proxy_from_environment)

    override_url = parse_test_host(test_host)
    if override_url is not None:
        L.info(f"Sending all requests to {override_url.scheme}://{override_url.netloc.decode('ascii')}")

    return httpx.Client(
        transport=VerboseTransport(
            transport,
            verbose=verbose,
            override_url=override_url,
            stream=stream,
            terminal_check=terminal_check,
        ),
        follow_redirects=True,
    )


def client_from_environment(environ: T.Optional[T.Mapping[str, str]] = None, **kwargs: T.Any) -> httpx.Client:
    """Client configured from HUB_TEST_HOST and HUB_VERBOSE.

    A given `environ` is also used for proxy lookup unless a resolver is passed in.
    """

    if environ is None:
        env: T.Mapping[str, str] = os.environ

    else:
        env = environ
        kwargs.setdefault("proxy_resolver", functools.partial(proxy_from_environment, environ))

    test_host = env.get(TEST_HOST_ENV, "").strip()
    verbose = env_flag(env, VERBOSE_ENV)

    return new_http_client(test_host, verbose, **kwargs)


########################################################################################################################
