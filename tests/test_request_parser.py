"""Unit tests for raw HTTP request parsing and parameter discovery."""
import pytest

from foxtab.errors import RequestParseError
from foxtab.models import Header
from foxtab.request_parser import discover_parameters, parse_raw_request


RAW_POST = (
    "POST /search?q=shoes&page=2 HTTP/1.1\r\n"
    "Host: shop.example.com\r\n"
    "Cookie: sid=abc\r\n"
    "Content-Type: application/x-www-form-urlencoded\r\n"
    "X-Dup: 1\r\n"
    "X-Dup: 2\r\n"
    "\r\n"
    "term=red&q=again&size="
)


class TestParseRawRequest:

    def test_post_request(self):
        ctx = parse_raw_request(RAW_POST)
        assert ctx.method == "POST"
        assert ctx.url == "https://shop.example.com/search?q=shoes&page=2"
        assert ctx.body == "term=red&q=again&size="
        assert ctx.headers[0] == Header("Host", "shop.example.com")
        assert [h.value for h in ctx.headers if h.is_named("x-dup")] == ["1", "2"]

    def test_plain_http_scheme(self):
        ctx = parse_raw_request("GET / HTTP/1.1\nHost: example.com:8080\n\n", https=False)
        assert ctx.url == "http://example.com:8080/"
        assert ctx.body == ""

    def test_absolute_form_target_kept(self):
        ctx = parse_raw_request("GET http://other.example/a?b=1 HTTP/1.1\nHost: example.com\n\n")
        assert ctx.url == "http://other.example/a?b=1"

    def test_base_url_overrides_host(self):
        ctx = parse_raw_request("GET /a?b=1 HTTP/1.1\nHost: internal\n\n", base_url="https://public.example/")
        assert ctx.url == "https://public.example/a?b=1"

    def test_method_upper_cased_and_header_value_with_colons(self):
        ctx = parse_raw_request("get /x HTTP/1.1\nHost: h\nReferer: https://h/x\n\n")
        assert ctx.method == "GET"
        assert ctx.header("Referer") == "https://h/x"

    def test_body_kept_verbatim(self):
        body = '{"a": "line1\\r\\nline2"}\n\ntrailing'
        ctx = parse_raw_request("PUT /api HTTP/1.1\r\nHost: h\r\nContent-Type: application/json\r\n\r\n" + body)
        assert ctx.body == body

    def test_bytes_input(self):
        ctx = parse_raw_request(b"GET /?x=1 HTTP/1.1\r\nHost: h\r\n\r\n")
        assert ctx.url == "https://h/?x=1"

    @pytest.mark.parametrize("raw", [
        "",
        "\r\n\r\n",
        "GET\nHost: h\n\n",
        "GET /x HTTP/1.1\nnot a header\n\n",
        "GET /x HTTP/1.1\nAccept: */*\n\n",
    ])
    def test_invalid_requests(self, raw):
        with pytest.raises(RequestParseError):
            parse_raw_request(raw)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_raw_request("")


class TestDiscoverParameters:

    def test_query_then_form_body_deduplicated(self):
        assert discover_parameters(parse_raw_request(RAW_POST)) == ["q", "page", "term", "size"]

    def test_json_body_ignored(self):
        ctx = parse_raw_request(
            "POST /api?id=1 HTTP/1.1\nHost: h\nContent-Type: application/json\n\n{\"name\": \"x\"}"
        )
        assert discover_parameters(ctx) == ["id"]

    def test_no_parameters(self):
        assert discover_parameters(parse_raw_request("GET / HTTP/1.1\nHost: h\n\n")) == []

    def test_blank_query_values_kept(self):
        ctx = parse_raw_request("GET /?a=&b HTTP/1.1\nHost: h\n\n")
        assert discover_parameters(ctx) == ["a", "b"]
