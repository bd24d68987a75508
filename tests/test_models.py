"""Unit tests for request snapshots, scan options and parameter ordering."""
import pytest
from pydantic import ValidationError

from foxtab.models import (
    Header, PocType, RequestContext, ScanMode, ScanOptions, clamp, order_parameters,
)


class TestRequestContext:

    def test_header_pairs_normalised(self):
        ctx = RequestContext("GET", "https://x/", headers=(("A", "1"), Header("B", "2")))
        assert ctx.headers == (Header("A", "1"), Header("B", "2"))

    def test_bytes_body_decoded(self):
        ctx = RequestContext("POST", "https://x/", body=b"a=1&b=\xc3\xa9")
        assert ctx.body == "a=1&b=é"

    def test_is_immutable(self):
        ctx = RequestContext("GET", "https://x/")
        with pytest.raises(Exception):
            ctx.url = "https://y/"

    def test_header_lookup_case_insensitive_first_wins(self):
        ctx = RequestContext("GET", "https://x/", headers=(("content-type", "text/plain"), ("Content-Type", "x")))
        assert ctx.header("CONTENT-TYPE") == "text/plain"
        assert ctx.header("Missing") is None
        assert ctx.content_type == "text/plain"

    def test_render_details(self):
        ctx = RequestContext("POST", "https://x/a", body="q=1", headers=(("Host", "x"),))
        assert ctx.render_details() == "POST https://x/a\n\nHost: x\n\nq=1"


class TestScanOptions:

    def test_defaults(self):
        opts = ScanOptions()
        assert opts.scan_mode == ScanMode.URL
        assert opts.no_color is True
        assert opts.poc_type == PocType.PLAIN
        assert (opts.workers, opts.timeout, opts.delay, opts.scan_timeout_minutes) == (100, 10, 0, 30)
        assert opts.proxy == opts.ignore_return == opts.blind_url == opts.trigger_url == ""

    @pytest.mark.parametrize("field,value,expected", [
        ("workers", 0, 1),
        ("workers", 501, 500),
        ("timeout", -3, 1),
        ("timeout", 121, 120),
        ("delay", -1, 0),
        ("delay", 10001, 10000),
        ("scan_timeout_minutes", 0, 1),
        ("scan_timeout_minutes", 500, 120),
        ("workers", 250, 250),
    ])
    def test_numeric_fields_clamped(self, field, value, expected):
        assert getattr(ScanOptions(**{field: value}), field) == expected

    def test_text_fields_stripped(self):
        opts = ScanOptions(proxy="  http://127.0.0.1:8080 ", trigger_url=None, blind_url=" https://cb ")
        assert opts.proxy == "http://127.0.0.1:8080"
        assert opts.trigger_url == ""
        assert opts.blind_url == "https://cb"

    def test_enums_from_strings(self):
        opts = ScanOptions(scan_mode="sxss", poc_type="http-request")
        assert opts.stored
        assert opts.poc_type == PocType.HTTP_REQUEST

    def test_unknown_poc_type_rejected(self):
        with pytest.raises(ValidationError):
            ScanOptions(poc_type="wget")

    def test_skip_all_mining_dominates(self):
        opts = ScanOptions(mining_dict=True, mining_dom=True, skip_mining_all=True)
        assert not opts.effective_mining_dict
        assert not opts.effective_mining_dom
        opts = ScanOptions(mining_dict=True)
        assert opts.effective_mining_dict
        assert not opts.effective_mining_dom

    def test_frozen(self):
        with pytest.raises(ValidationError):
            ScanOptions().workers = 5


class TestOrderParameters:

    def test_none_selects_all_known(self):
        assert order_parameters(["q", "id", "q"], None) == ["q", "id"]

    def test_selection_sorted_by_source_order(self):
        assert order_parameters(["q", "id", "page"], {"page", "q"}) == ["q", "page"]
        assert order_parameters(["q", "id", "page"], ["page", "id", "q"]) == ["q", "id", "page"]

    def test_unknown_names_kept_after_known(self):
        assert order_parameters(["q"], ["zeta", "q", "alpha", "zeta", ""]) == ["q", "zeta", "alpha"]

    def test_empty_selection(self):
        assert order_parameters(["q"], []) == []


def test_clamp():
    assert clamp(5, 1, 3) == 3
    assert clamp(-1, 0, 3) == 0
    assert clamp(2, 0, 3) == 2
