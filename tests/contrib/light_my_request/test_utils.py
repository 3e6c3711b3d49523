from urllib.parse import urlsplit

import pytest

from lmrtrace.contrib.light_my_request.utils import RequestDescriptor
from lmrtrace.contrib.light_my_request.utils import get_header
from lmrtrace.contrib.light_my_request.utils import normalize_options
from lmrtrace.contrib.light_my_request.utils import parse_host
from lmrtrace.contrib.light_my_request.utils import request_descriptor
from lmrtrace.contrib.light_my_request.utils import span_attributes


@pytest.mark.parametrize(
    "options,expected",
    [
        ("/path", {"url": "/path"}),
        (urlsplit("http://localhost/test?x=1"), {"url": "http://localhost/test?x=1"}),
        ({"method": "POST"}, {"method": "POST"}),
        (None, {}),
        (42, {}),
    ],
)
def test_normalize_options(options, expected):
    assert normalize_options(options) == expected


def test_normalize_options_copies_mapping():
    options = {"url": "/a"}
    normalized = normalize_options(options)

    normalized["url"] = "/b"

    assert options == {"url": "/a"}


class TestRequestDescriptor(object):
    def test_defaults(self):
        request = request_descriptor(None)

        assert request == RequestDescriptor()
        assert request.method == "GET"
        assert request.url == "/"
        assert request.headers is None
        assert request.remote_address is None
        assert request.span_name == "GET /"

    def test_method_and_url(self):
        request = request_descriptor({"method": "patch", "url": "/items/1"})

        assert request.method == "PATCH"
        assert request.url == "/items/1"
        assert request.span_name == "PATCH /items/1"

    def test_url_like_url(self):
        request = request_descriptor({"url": urlsplit("http://localhost/test")})

        assert request.url == "http://localhost/test"

    @pytest.mark.parametrize("method", ["", None, 5])
    def test_invalid_method(self, method):
        assert request_descriptor({"method": method}).method == "GET"

    @pytest.mark.parametrize("url", ["", None, 5])
    def test_invalid_url(self, url):
        assert request_descriptor({"url": url}).url == "/"

    def test_non_mapping_headers_are_ignored(self):
        assert request_descriptor({"headers": [("host", "example.com")]}).headers is None

    @pytest.mark.parametrize("key", ["remoteAddress", "remote_address"])
    def test_remote_address(self, key):
        assert request_descriptor({key: "127.0.0.1"}).remote_address == "127.0.0.1"

    def test_options_are_a_copy(self):
        options = {"url": "/copy"}
        request = request_descriptor(options)

        assert request.options == options
        assert request.options is not options

    def test_is_frozen(self):
        request = request_descriptor("/frozen")

        with pytest.raises(AttributeError):
            request.url = "/thawed"


class TestGetHeader(object):
    def test_first_match(self):
        headers = {"User-Agent": "upper", "user-agent": "lower"}

        assert get_header(headers, "user-agent", "User-Agent") == "lower"

    def test_fallback_name(self):
        assert get_header({"User-Agent": "upper"}, "user-agent", "User-Agent") == "upper"

    def test_empty_and_non_string_values(self):
        assert get_header({"host": ""}, "host") is None
        assert get_header({"host": ["a", "b"]}, "host") is None
        assert get_header(None, "host") is None


@pytest.mark.parametrize(
    "host,expected",
    [
        ("example.com", {"server.address": "example.com"}),
        ("example.com:8080", {"server.address": "example.com", "server.port": 8080}),
        ("example.com:http", {"server.address": "example.com"}),
        ("localhost:", {"server.address": "localhost"}),
        (":3000", {"server.port": 3000}),
    ],
)
def test_parse_host(host, expected):
    assert parse_host(host) == expected


class TestSpanAttributes(object):
    def test_minimal(self):
        assert span_attributes(request_descriptor("/test")) == {
            "http.request.method": "GET",
            "url.full": "/test",
            "url.path": "/test",
            "url.scheme": "http",
        }

    def test_query(self):
        attributes = span_attributes(request_descriptor("/search?q=test&limit=10"))

        assert attributes["url.path"] == "/search"
        assert attributes["url.query"] == "q=test&limit=10"

    def test_empty_query(self):
        attributes = span_attributes(request_descriptor("/search?"))

        assert attributes["url.path"] == "/search"
        assert "url.query" not in attributes

    def test_headers(self):
        request = request_descriptor(
            {
                "url": "/",
                "remote_address": "10.1.2.3",
                "headers": {
                    "Host": "api.local:9000",
                    "User-Agent": "agent/2",
                    "httpVersion": "2",
                },
            }
        )

        attributes = span_attributes(request)

        assert attributes["server.address"] == "api.local"
        assert attributes["server.port"] == 9000
        assert attributes["user_agent.original"] == "agent/2"
        assert attributes["network.protocol.version"] == "2"
        assert attributes["client.address"] == "10.1.2.3"

    def test_no_empty_values(self):
        request = request_descriptor({"url": "/", "headers": {"host": "", "user-agent": None}})

        attributes = span_attributes(request)

        assert all(value is not None and value != "" for value in attributes.values())
        assert "server.address" not in attributes
        assert "user_agent.original" not in attributes
