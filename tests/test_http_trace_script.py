import argparse
import contextlib
import io
import unittest
import unittest.mock

import httpx

import hubclient
from scripts import http_trace


class HttpTraceScriptTests(unittest.TestCase):
    def test_parse_header_splits_name_and_value(self):
        self.assertEqual(http_trace.parse_header("Accept: application/json"), ("Accept", "application/json"))
        with self.assertRaises(argparse.ArgumentTypeError):
            http_trace.parse_header("no-colon")

    def test_parser_defaults(self):
        args = http_trace.create_parser().parse_args(["https://api.example.com/user", "--no-verbose", "--test-host", ""])
        self.assertEqual(args.method, "GET")
        self.assertEqual(args.header, [])
        self.assertIsNone(args.data)
        self.assertFalse(args.verbose)
        self.assertEqual(args.test_host, "")

    def test_command_request_sends_method_headers_and_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, text="created")

        parser = http_trace.create_parser()
        args = parser.parse_args(
            [
                "-X",
                "post",
                "-H",
                "Accept: application/vnd.github+json",
                "-d",
                '{"name": "hub"}',
                "--no-verbose",
                "https://api.example.com/user/repos",
            ]
        )
        client = hubclient.new_http_client("", False, transport=httpx.MockTransport(handler))

        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            code = http_trace.command_request(args, client=client)

        self.assertEqual(code, 0)
        self.assertEqual(stdout.getvalue(), "created\n")
        self.assertEqual(seen[0].method, "POST")
        self.assertEqual(seen[0].headers["Accept"], "application/vnd.github+json")
        self.assertEqual(seen[0].content, b'{"name": "hub"}')

    def test_command_request_error_status(self):
        args = http_trace.create_parser().parse_args(["--no-verbose", "https://api.example.com/missing"])
        client = hubclient.new_http_client(
            "", False, transport=httpx.MockTransport(lambda request: httpx.Response(404, text="Not Found\n"))
        )

        with contextlib.redirect_stdout(io.StringIO()):
            self.assertEqual(http_trace.command_request(args, client=client), 1)

    def test_main_reports_proxy_errors(self):
        stderr = io.StringIO()
        with unittest.mock.patch.dict("os.environ", {"http_proxy": "http://bad\x7fhost", "HTTP_PROXY": ""}):
            with contextlib.redirect_stderr(stderr):
                code = http_trace.main(["--no-verbose", "--test-host", "", "https://api.example.com/user"])

        self.assertEqual(code, 2)
        self.assertIn("Error: invalid proxy address", stderr.getvalue())


if __name__ == "__main__":
    unittest.main(verbosity=2)
