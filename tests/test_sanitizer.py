"""Tests for text, markup and URL sanitization."""

import re
from datetime import datetime, timezone

import pytest

from attendee.app.security.models import SanitizationPolicy
from attendee.app.security.sanitizer import (
    SECURITY_HEADERS,
    generate_csp,
    generate_secure_token,
    sanitize_rich_text,
    sanitize_text,
    sanitize_url,
    validate_session_data,
)


class TestSanitizeText:
    """Test plain text sanitization."""

    def test_strips_html_characters(self):
        assert sanitize_text('<b>"Tom" & \'Jerry\'</b>') == "bTom  Jerry/b"

    def test_strips_dangerous_protocols_case_insensitively(self):
        assert sanitize_text("JavaScript:alert(1)") == "alert(1)"
        assert sanitize_text("see data:text/html and VBScript:x") == "see text/html and x"

    def test_removal_cannot_splice_a_new_protocol(self):
        assert sanitize_text("javajavascript:script:alert(1)") == "alert(1)"

    def test_trims_whitespace(self):
        assert sanitize_text("   Will slides be shared?  \n") == "Will slides be shared?"

    def test_truncates_to_max_length(self):
        assert sanitize_text("a" * 2000) == "a" * 1000
        assert sanitize_text("abcdef", max_length=3) == "abc"

    def test_non_string_input_yields_empty_string(self):
        assert sanitize_text(None) == ""
        assert sanitize_text(42) == ""
        assert sanitize_text(["<script>"]) == ""

    def test_non_positive_max_length(self):
        assert sanitize_text("hello", max_length=0) == ""

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "plain question?",
            "  < leading bracket",
            "x' ' ' y",
            "javajavascript:script:",
            "abc   def",
            "data:data:data::",
            "\t<>\"'&\t",
            "word " * 300,
        ],
    )
    @pytest.mark.parametrize("max_length", [4, 1000])
    def test_idempotent(self, raw, max_length):
        once = sanitize_text(raw, max_length)
        assert sanitize_text(once, max_length) == once


class TestSanitizeRichText:
    """Test constrained markup sanitization."""

    def test_removes_script_and_keeps_allowed_markup(self):
        out = sanitize_rich_text("<p>Hello <script>alert(1)</script><b>world</b></p>")
        assert "<script" not in out
        assert "alert" not in out
        assert "<b>world</b>" in out
        assert out.startswith("<p>")

    def test_strips_disallowed_tags_but_keeps_text(self):
        assert sanitize_rich_text("<div>Keynote <span>at 9</span></div>") == "Keynote at 9"

    def test_event_handlers_removed_allowed_attrs_kept(self):
        out = sanitize_rich_text('<p onclick="steal()" class="lead">Hi</p>')
        assert "onclick" not in out
        assert 'class="lead"' in out

    def test_script_constructs_removed_even_if_policy_allows_them(self):
        policy = SanitizationPolicy(
            allowed_tags={"p", "script", "form", "input", "embed"},
            allowed_attrs={"onclick", "onerror", "class"},
        )
        out = sanitize_rich_text(
            '<p onclick="x()">ok</p><script>bad()</script>'
            '<form action="/steal"><input name="pw">Name</form><embed src="x.swf">',
            policy,
        )
        assert "onclick" not in out
        assert "<script" not in out and "bad()" not in out
        assert "<form" not in out
        assert "<input" not in out
        assert "<embed" not in out
        assert "ok" in out

    def test_forbidden_link_protocols_dropped(self):
        policy = SanitizationPolicy(allowed_tags={"a"}, allowed_attrs={"href"})
        out = sanitize_rich_text('<a href="javascript:alert(1)">click</a>', policy)
        assert "javascript" not in out
        assert "click" in out

    def test_max_length(self):
        policy = SanitizationPolicy(max_length=12)
        out = sanitize_rich_text("<p>" + "word " * 50 + "</p>", policy)
        assert len(out) <= 12
        assert out.startswith("<p>") and out.endswith("</p>")

    def test_truncation_keeps_tags_closed(self):
        out = sanitize_rich_text("<b>xxxxxxxxxxxx</b>", SanitizationPolicy(max_length=10))

        assert out == "<b>xxx</b>"

    def test_truncation_never_splits_entities(self):
        out = sanitize_rich_text("<b>x</b>&&&&&&", SanitizationPolicy(max_length=10))

        assert out == "<b>x</b>"

    @pytest.mark.parametrize("max_length", range(1, 40))
    def test_truncated_markup_is_well_formed(self, max_length):
        raw = "<p>Tom &amp; Jerry <em>live</em> &lt;3 <strong>today</strong></p>"
        out = sanitize_rich_text(raw, SanitizationPolicy(max_length=max_length))

        assert len(out) <= max_length
        for tag in ("p", "em", "strong"):
            assert out.count(f"<{tag}>") == out.count(f"</{tag}>")
        assert re.fullmatch(r"(?:[^&]|&(?:amp|lt|gt|quot|#\d+);)*", out)

    def test_non_string_input_yields_empty_string(self):
        assert sanitize_rich_text(None) == ""
        assert sanitize_rich_text(3.14) == ""


class TestSanitizeUrl:
    """Test URL validation and normalization."""

    def test_normalizes_http_url(self):
        assert sanitize_url("HTTPS://Example.COM") == "https://example.com/"
        assert (
            sanitize_url("  https://example.com/programme?day=1#keynote ")
            == "https://example.com/programme?day=1#keynote"
        )

    def test_keeps_port(self):
        assert sanitize_url("http://localhost:8080/map") == "http://localhost:8080/map"

    def test_mailto_allowed_by_default(self):
        assert sanitize_url("mailto:info@example.org") == "mailto:info@example.org"

    def test_scheme_not_in_allow_list(self):
        assert sanitize_url("ftp://files.example.com/slides.pdf") is None
        assert sanitize_url("https://example.com", {"http"}) is None

    def test_protocols_accepted_with_or_without_colon(self):
        assert sanitize_url("ftp://files.example.com", {"ftp:"}) == "ftp://files.example.com"
        assert sanitize_url("https://example.com", ["HTTPS"]) == "https://example.com/"

    @pytest.mark.parametrize(
        ("url", "allowed"),
        [
            ("javascript:alert(1)", {"javascript:"}),
            ("JAVASCRIPT:alert(1)", {"javascript"}),
            ("data:text/html;base64,PHNjcmlwdD4=", {"data:"}),
            ("vbscript:msgbox(1)", {"vbscript:"}),
            (" java\tscript:alert(1)", {"javascript:", "http:"}),
        ],
    )
    def test_hard_deny_overrides_allow_list(self, url, allowed):
        assert sanitize_url(url, allowed) is None

    @pytest.mark.parametrize(
        "url",
        ["", "   ", "not a url", "example.com/page", "http://", "https://example.com:99999", "http://[::1"],
    )
    def test_malformed_urls(self, url):
        assert sanitize_url(url) is None

    def test_non_string_input(self):
        assert sanitize_url(None) is None
        assert sanitize_url(123) is None


class TestValidateSessionData:
    """Test programme session record validation."""

    @pytest.fixture
    def session(self):
        return {
            "id": "s-101",
            "title": "Opening keynote",
            "start_time": "2025-09-12T09:00:00",
            "end_time": "2025-09-12T10:00:00",
        }

    def test_valid_session(self, session):
        assert validate_session_data(session) is True

    def test_integer_id_and_datetime_values(self, session):
        session["id"] = 7
        session["start_time"] = datetime(2025, 9, 12, 9, tzinfo=timezone.utc)
        session["end_time"] = datetime(2025, 9, 12, 10, tzinfo=timezone.utc)
        assert validate_session_data(session) is True

    @pytest.mark.parametrize("field", ["id", "title", "start_time", "end_time"])
    def test_missing_or_null_field(self, session, field):
        session[field] = None
        assert validate_session_data(session) is False
        del session[field]
        assert validate_session_data(session) is False

    def test_bad_id_types(self, session):
        session["id"] = True
        assert validate_session_data(session) is False
        session["id"] = 1.5
        assert validate_session_data(session) is False

    def test_title_length(self, session):
        session["title"] = "x" * 200
        assert validate_session_data(session) is True
        session["title"] = "x" * 201
        assert validate_session_data(session) is False

    def test_start_must_be_strictly_before_end(self, session):
        session["end_time"] = session["start_time"]
        assert validate_session_data(session) is False
        session["end_time"] = "2025-09-12T08:00:00"
        assert validate_session_data(session) is False

    def test_unparseable_or_incomparable_times(self, session):
        session["start_time"] = "tomorrow morning"
        assert validate_session_data(session) is False
        session["start_time"] = "2025-09-12T09:00:00+00:00"
        assert validate_session_data(session) is False

    def test_not_a_mapping(self):
        assert validate_session_data(None) is False
        assert validate_session_data(["id", "title"]) is False

    def test_does_not_mutate_input(self, session):
        before = dict(session)
        validate_session_data(session)
        assert session == before


class TestHeadersAndTokens:
    """Test CSP, security headers and token generation."""

    def test_csp(self):
        csp = generate_csp()
        assert "default-src 'self'" in csp
        assert "frame-ancestors 'none'" in csp
        assert "connect-src 'self';" in csp

    def test_csp_connect_sources(self):
        csp = generate_csp(["https://db.example.co", "wss://db.example.co"])
        assert "connect-src 'self' https://db.example.co wss://db.example.co" in csp

    def test_security_headers_are_read_only(self):
        assert SECURITY_HEADERS["X-Frame-Options"] == "DENY"
        with pytest.raises(TypeError):
            SECURITY_HEADERS["X-Frame-Options"] = "ALLOW"

    def test_secure_token(self):
        token = generate_secure_token()
        assert len(token) == 64
        int(token, 16)
        assert generate_secure_token() != token
        assert len(generate_secure_token(8)) == 16
