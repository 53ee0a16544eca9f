#!/usr/bin/env python3
"""
Mock Warp 10 server for local development.

Serves `/api/v0/find` from a small in-memory catalog so promwarp can be
pointed at it without a real Warp 10 instance:

    python examples/mock_warp10.py --port 8080
    PROMWARP_WARP_ENDPOINT=http://127.0.0.1:8080 promwarp serve
"""

import argparse
import json
import re
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, unquote, urlparse

CATALOG = [
    {"c": "http_requests_total", "l": {".app": "demo", "job": "api", "env": "prod", "code": "200"}, "a": {}},
    {"c": "http_requests_total", "l": {".app": "demo", "job": "api", "env": "prod", "code": "500"}, "a": {}},
    {"c": "http_requests_total", "l": {".app": "demo", "job": "api", "env": "dev", "code": "200"}, "a": {}},
    {"c": "http_request_duration_seconds", "l": {".app": "demo", "job": "api", "env": "prod"}, "a": {"unit": "s"}},
    {"c": "prometheus_build_info", "l": {".app": "demo", "job": "prometheus", "version": "2.51.0"}, "a": {}},
    {"c": "node_cpu_seconds_total", "l": {".app": "demo", "job": "node", "cpu": "0", "mode": "idle"}, "a": {}},
]


def _matches(pattern: str, value: str | None) -> bool:
    """Warp 10 semantics: `~re` is a full regex match, anything else is exact."""
    if value is None:
        return False
    if pattern.startswith("~"):
        return re.fullmatch(pattern[1:], value) is not None
    return pattern == value


def parse_selector(selector: str) -> tuple[str, dict[str, str]]:
    """Split `class{a=b,c~d}` into its class pattern and label patterns."""
    class_part, _, rest = selector.partition("{")
    labels: dict[str, str] = {}
    for item in filter(None, rest.rstrip("}").split(",")):
        match = re.match(r"([^=~]+)([=~])(.*)", item)
        if not match:
            continue
        name, op, value = match.groups()
        labels[unquote(name)] = ("~" if op == "~" else "") + unquote(value)
    if class_part.startswith("~"):
        return "~" + unquote(class_part[1:]), labels
    return unquote(class_part), labels


class MockWarp10Handler(BaseHTTPRequestHandler):
    """Handler for mock Warp 10 API requests."""

    def log_message(self, format, *args):
        print(f"[{self.log_date_time_string()}] {format % args}")

    def do_GET(self):
        parsed_url = urlparse(self.path)
        query_params = parse_qs(parsed_url.query)

        if parsed_url.path == "/api/v0/find":
            self._handle_find(query_params)
        elif parsed_url.path == "/api/v0/check":
            self._send_json_response({"status": "ok"})
        else:
            self._send_error(404, f"Path not found: {parsed_url.path}")

    def _handle_find(self, params):
        if not self.headers.get("X-Warp10-Token"):
            self._send_error(403, "Missing token")
            return

        selector = params.get("selector", [""])[0]
        class_pattern, label_patterns = parse_selector(selector)
        gcount = int(params.get("gcount", ["0"])[0] or 0)

        found = []
        for gts in CATALOG:
            if not _matches(class_pattern, gts["c"]):
                continue
            if all(_matches(p, gts["l"].get(name, gts["a"].get(name))) for name, p in label_patterns.items()):
                found.append(gts)

        if gcount > 0:
            found = found[:gcount]
        self._send_json_response(found)

    def _send_json_response(self, data, status_code=200):
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def _send_error(self, status_code, message):
        self.send_response(status_code)
        self.send_header("Content-Type", "text/plain")
        self.end_headers()
        self.wfile.write(message.encode())


def main():
    """Run mock Warp 10 server."""
    parser = argparse.ArgumentParser(description="Mock Warp 10 server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind to")
    args = parser.parse_args()

    server = HTTPServer((args.host, args.port), MockWarp10Handler)

    print(f"Mock Warp 10 server running on http://{args.host}:{args.port}")
    print(f"   Find endpoint: http://{args.host}:{args.port}/api/v0/find")
    print()
    print("Press Ctrl+C to stop")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nServer stopped")
        server.shutdown()


if __name__ == "__main__":
    main()
