"""
FoxTab - Request Parser
Turns a raw HTTP request (as copied out of a proxy) into a RequestContext.
"""

from typing import List
from urllib.parse import parse_qsl, urljoin, urlsplit

from foxtab.errors import RequestParseError
from foxtab.models import Header, RequestContext


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_raw_request(raw: str, https: bool = True, base_url: str = "") -> RequestContext:
    """
    Parse a raw request:

        POST /search?q=1 HTTP/1.1
        Host: example.com
        Content-Type: application/x-www-form-urlencoded

        term=abc

    Header order and duplicates are preserved. The body is kept verbatim.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")

    # Only the head is line-normalised; the body goes to the scanner untouched
    head, body = _split_head(raw.lstrip("\r\n"))
    lines = [l for l in head.split("\n") if l.strip()]
    if not lines:
        raise RequestParseError("Request is empty.")

    parts = lines[0].split()
    if len(parts) < 2:
        raise RequestParseError(f"Invalid request line: {lines[0]!r}")
    method, target = parts[0].upper(), parts[1]

    headers: List[Header] = []
    for line in lines[1:]:
        if ':' not in line:
            raise RequestParseError(f"Invalid header line: {line!r}")
        name, value = line.split(':', 1)
        headers.append(Header(name.strip(), value.strip()))

    url = _absolute_url(target, headers, https, base_url)
    return RequestContext(method=method, url=url, body=body, headers=tuple(headers))


def _split_head(raw: str):
    for sep in ("\r\n\r\n", "\n\n"):
        idx = raw.find(sep)
        if idx != -1:
            return raw[:idx].replace("\r\n", "\n"), raw[idx + len(sep):]
    return raw.replace("\r\n", "\n"), ""


def _absolute_url(target: str, headers: List[Header], https: bool, base_url: str) -> str:
    if urlsplit(target).scheme in ("http", "https"):
        return target
    if base_url:
        return urljoin(base_url, target)

    host = next((h.value for h in headers if h.is_named("Host")), "")
    if not host:
        raise RequestParseError("Request has a relative target and no Host header.")
    scheme = "https" if https else "http"
    if not target.startswith("/"):
        target = "/" + target
    return f"{scheme}://{host}{target}"


def discover_parameters(context: RequestContext) -> List[str]:
    """Parameter names in source order: query string first, then form body."""
    names: List[str] = []
    for name, _ in parse_qsl(urlsplit(context.url).query, keep_blank_values=True):
        names.append(name)
    if FORM_CONTENT_TYPE in context.content_type and context.body:
        for name, _ in parse_qsl(context.body.strip(), keep_blank_values=True):
            names.append(name)
    return list(dict.fromkeys(n for n in names if n.strip()))
