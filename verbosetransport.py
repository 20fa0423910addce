######################################################################################################################

"""HTTP transport wrapper that traces requests/responses to stderr and can redirect them to a test host."""

######################################################################################################################

import typing as T  # isort: split

import logging
import re
import sys

import httpx

######################################################################################################################

# global, re-assignable
L = logging.getLogger("hubhttp.transport")


def transport_set_logger(logger: logging.Logger) -> None:
    # pylint: disable-next=global-statement
    global L
    if logger is not None:
        L = logger


######################################################################################################################

# "Localtion" is misspelled on purpose, trace output has always listed it this way
DUMP_HEADERS = ("Authorization", "X-GitHub-OTP", "Localtion")

ORIGINAL_SCHEME_HEADER = "X-Original-Scheme"

_CREDENTIAL_RE = re.compile(r"^(basic|token)\s+(.+)", re.IGNORECASE)

_CYAN = "\033[36m"
_RESET = "\033[m"


def redact_header_value(value: str) -> str:
    """Replace the credential after a `basic`/`token` prefix with [REDACTED]."""

    return _CREDENTIAL_RE.sub(r"\1 [REDACTED]", value)


def is_terminal(stream: T.Any) -> bool:
    isatty = getattr(stream, "isatty", None)
    if isatty is None:
        return False

    try:
        return bool(isatty())

    except (ValueError, OSError):
        # closed or detached stream
        return False


def clone_request(request: httpx.Request) -> httpx.Request:
    """Copy a request so its URL and headers can be changed without touching the original.

    The body stream and extensions are shared; headers and URL are new objects.
    """

    dup = httpx.Request(
        request.method,
        httpx.URL(str(request.url)),
        headers=request.headers.copy(),
        stream=request.stream,
        extensions=dict(request.extensions),
    )
    if isinstance(request.stream, httpx.ByteStream):
        dup.read()

    return dup


def override_request(request: httpx.Request, target: httpx.URL) -> httpx.Request:
    """Clone of `request` aimed at the scheme and host of `target`, path and query kept."""

    dup = clone_request(request)
    dup.headers[ORIGINAL_SCHEME_HEADER] = request.url.scheme
    dup.url = dup.url.copy_with(scheme=target.scheme, host=target.host, port=target.port)

    L.debug(f"Redirecting {request.url} -> {dup.url}")
    return dup


def _fatal(exc: BaseException) -> T.NoReturn:
    L.error(f"Reading body for trace failed: {exc!r}")
    print(f"Error: {exc}", file=sys.stderr)
    sys.exit(1)


######################################################################################################################


class VerboseTransport(httpx.BaseTransport):
    """Transport that dumps each exchange to the diagnostic stream and optionally rewrites its target.

    Wraps the actual transport. With `verbose` set, the request line, a fixed set of
    (redacted) headers and the body are printed before delegating, and the status,
    redirect location, headers and body of the response afterwards. Bodies are read
    fully and put back as fresh streams, so callers see the same content.

    With `override_url` set, every request is sent to that scheme and host instead,
    carrying its original scheme in an `X-Original-Scheme` header. The caller's
    request object is left as it was.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport,
        verbose: bool = False,
        override_url: T.Optional[httpx.URL] = None,
        stream: T.Optional[T.TextIO] = None,
        terminal_check: T.Callable[[T.Any], bool] = is_terminal,
    ):
        self.transport = transport
        self.verbose = verbose
        self.override_url = override_url
        self.stream = stream
        self.terminal_check = terminal_check

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self.verbose:
            self.dump_request(request)

        if self.override_url is not None:
            request = override_request(request, self.override_url)

        response = self.transport.handle_request(request)

        if self.verbose:
            self.dump_response(response, request)

        return response

    def close(self) -> None:
        self.transport.close()

    def dump_request(self, request: httpx.Request) -> None:
        host = request.headers.get("Host") or request.url.netloc.decode("ascii")
        self.verbose_println(f"> {request.method} {request.url.scheme}://{host}{request.url.path}")
        self.dump_headers(request.headers, ">")

        # reset stream since it's been read
        request.stream = self.dump_body(request.stream)

    def dump_response(self, response: httpx.Response, request: httpx.Request) -> None:
        info = f"< HTTP {response.status_code}"
        location = response_location(response, request)
        if location is not None:
            info = f"{info}\n< Location: {location}"

        self.verbose_println(info)
        self.dump_headers(response.headers, "<")

        # reset stream since it's been read
        response.stream = self.dump_body(response.stream, response.headers)

    def dump_headers(self, headers: httpx.Headers, indent: str) -> None:
        for name in DUMP_HEADERS:
            value = headers.get(name)
            if value:
                self.verbose_println(f"{indent} {name}: {redact_header_value(value)}")

    def dump_body(self, stream: T.Any, headers: T.Optional[httpx.Headers] = None) -> httpx.ByteStream:
        """Print a body and return it as a fresh stream holding the same raw bytes.

        With `headers`, the printed text is decoded per its Content-Encoding.
        """

        try:
            content = b"".join(stream)

        except (httpx.HTTPError, OSError) as exc:
            _fatal(exc)

        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        if content:
            shown = decoded_content(content, headers) if headers is not None else content
            self.verbose_println(shown.decode("utf-8", errors="replace"))

        return httpx.ByteStream(content)

    def verbose_println(self, msg: str) -> None:
        stream = self.stream if self.stream is not None else sys.stderr
        if self.terminal_check(stream):
            msg = f"{_CYAN}{msg}{_RESET}"

        print(msg, file=stream)


def decoded_content(content: bytes, headers: httpx.Headers) -> bytes:
    """Body bytes with Content-Encoding (gzip, deflate, ...) undone, or the raw bytes if that fails."""

    try:
        return httpx.Response(200, headers=headers, content=content).content

    except httpx.DecodingError as exc:
        L.debug(f"Showing raw body, decoding failed: {exc}")
        return content


def response_location(response: httpx.Response, request: httpx.Request) -> T.Optional[httpx.URL]:
    """Absolute redirect target of a response, or None if it has no usable Location header."""

    location = response.headers.get("Location")
    if not location:
        return None

    try:
        return request.url.join(location)

    except httpx.InvalidURL:
        return None


######################################################################################################################
