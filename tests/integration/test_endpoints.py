"""Integration tests for browsing and downloading shared entries."""

import re

import pytest
import requests

from tests.utils.http import send_raw_request

pytestmark = pytest.mark.integration


def test_root_lists_directories_before_files(scenario_server):
    """The root page lists both roots, the directory first."""
    response = requests.get(f"{scenario_server['base_url']}/", timeout=5)

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    hrefs = re.findall(r'href="([^"]+)"', response.text)
    assert hrefs == ["/sub", "/a.txt"]


def test_full_download(scenario_server):
    """A plain GET returns the whole file."""
    response = requests.get(f"{scenario_server['base_url']}/a.txt", timeout=5)

    assert response.status_code == 200
    assert response.content == b"abc"
    assert response.headers["content-length"] == "3"
    assert response.headers["accept-ranges"] == "bytes"
    assert response.headers["content-disposition"] == 'inline; filename="a.txt"'


def test_partial_download(scenario_server):
    """A satisfiable range returns 206 with the window."""
    response = requests.get(
        f"{scenario_server['base_url']}/a.txt",
        headers={"Range": "bytes=1-2"},
        timeout=5,
    )

    assert response.status_code == 206
    assert response.content == b"bc"
    assert response.headers["content-range"] == "bytes 1-2/3"


def test_unsatisfiable_range(scenario_server):
    """A range past the end returns 416."""
    response = requests.get(
        f"{scenario_server['base_url']}/a.txt",
        headers={"Range": "bytes=5-9"},
        timeout=5,
    )

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */3"


def test_missing_path(scenario_server):
    """Unknown names are 404."""
    response = requests.get(f"{scenario_server['base_url']}/missing", timeout=5)

    assert response.status_code == 404


def test_nested_directory_and_file(scenario_server):
    """Shared directories can be browsed and their files downloaded."""
    base = scenario_server["base_url"]

    listing = requests.get(f"{base}/sub", timeout=5)
    download = requests.get(f"{base}/sub/b.txt", timeout=5)

    assert 'href="/sub/b.txt"' in listing.text
    assert download.content == b"bee"


@pytest.mark.parametrize(
    "target",
    [
        "/sub/../a.txt",
        "/sub/%2e%2e/%2e%2e/etc/passwd",
        "/sub/..%2f..%2fetc%2fpasswd",
        "//etc/passwd",
        "/sub/b.txt%00.png",
    ],
)
def test_traversal_attempts_are_not_found(scenario_server, target):
    """Raw traversal targets never escape the shared roots."""
    response = send_raw_request(
        scenario_server["host"],
        scenario_server["port"],
        f"GET {target} HTTP/1.1\r\nHost: test\r\nConnection: close\r\n\r\n".encode(),
    )

    assert response.status_line == "HTTP/1.1 404 Not Found"


def test_every_response_carries_cors_and_request_id(scenario_server):
    """CORS headers and a request id accompany success and error responses."""
    base = scenario_server["base_url"]

    for url in (f"{base}/", f"{base}/a.txt", f"{base}/missing"):
        response = requests.get(url, timeout=5)
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert response.headers["x-request-id"]


def test_client_request_id_is_echoed(scenario_server):
    """A client-supplied X-Request-ID is returned unchanged."""
    response = requests.get(
        f"{scenario_server['base_url']}/a.txt",
        headers={"X-Request-ID": "trace-42"},
        timeout=5,
    )

    assert response.headers["x-request-id"] == "trace-42"


def test_head_and_conditional_get(scenario_server):
    """HEAD mirrors GET headers and a matching ETag yields 304."""
    url = f"{scenario_server['base_url']}/a.txt"

    head = requests.head(url, timeout=5)
    cached = requests.get(url, headers={"If-None-Match": head.headers["etag"]}, timeout=5)

    assert head.status_code == 200
    assert head.headers["content-length"] == "3"
    assert head.content == b""
    assert cached.status_code == 304
    assert cached.content == b""


def test_post_is_not_allowed(scenario_server):
    """Uploads are not supported."""
    response = requests.post(f"{scenario_server['base_url']}/a.txt", data=b"x", timeout=5)

    assert response.status_code == 405
    assert response.headers["allow"] == "GET, HEAD, OPTIONS"


def test_preflight_request(scenario_server):
    """CORS preflights are answered with 204."""
    response = requests.options(
        f"{scenario_server['base_url']}/a.txt",
        headers={"Origin": "http://phone.local", "Access-Control-Request-Method": "GET"},
        timeout=5,
    )

    assert response.status_code == 204
    assert response.headers["access-control-max-age"] == "86400"


def test_malformed_request_line_is_bad_request(scenario_server):
    """Garbage request lines get a 400 and the connection closes."""
    response = send_raw_request(
        scenario_server["host"], scenario_server["port"], b"NONSENSE\r\n\r\n"
    )

    assert response.status_line == "HTTP/1.1 400 Bad Request"
    assert response.headers.get("connection") == "close"
    assert response.headers["access-control-allow-origin"] == "*"
