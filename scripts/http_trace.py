from __future__ import annotations

import argparse
import os
import sys
from typing import Sequence

import httpx

import hubclient


def parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got: {raw!r}")
    return name.strip(), value.strip()


def build_request(client: httpx.Client, args: argparse.Namespace) -> httpx.Request:
    content = args.data.encode("utf-8") if args.data is not None else None
    return client.build_request(
        args.method.upper(),
        args.url,
        headers=list(args.header),
        content=content,
    )


def command_request(args: argparse.Namespace, client: httpx.Client | None = None) -> int:
    if client is None:
        client = hubclient.new_http_client(args.test_host, args.verbose)

    with client:
        response = client.send(build_request(client, args))

    sys.stdout.write(response.text)
    if response.text and not response.text.endswith("\n"):
        sys.stdout.write("\n")

    return 0 if response.status_code < 400 else 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send one HTTP request through the hub client, optionally tracing it to stderr."
    )
    parser.add_argument("url", help="Request URL.")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method.")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        type=parse_header,
        default=[],
        help="Extra request header 'Name: value'. May be repeated.",
    )
    parser.add_argument("-d", "--data", default=None, help="Request body.")
    parser.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=hubclient.env_flag(os.environ, hubclient.VERBOSE_ENV),
        help="Dump the request and response to stderr. Falls back to HUB_VERBOSE.",
    )
    parser.add_argument(
        "--test-host",
        default=os.getenv(hubclient.TEST_HOST_ENV, "").strip(),
        help="Send the request to this scheme://host instead. Falls back to HUB_TEST_HOST.",
    )
    parser.set_defaults(handler=command_request)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.handler(args))
    except httpx.HTTPError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
