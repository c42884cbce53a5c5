"""Tests for allowlist parsing and domain validation.

The validator guards a root-owned file read by the firewall script, so
the rejection tests focus on shell metacharacters and other injection
shapes.
"""

from __future__ import annotations

import itertools

import pytest

from codex_container.core.domains import (
    Allowlist,
    is_valid_domain,
    parse_allowlist,
    validate_domain,
)
from codex_container.core.errors import (
    ConfigurationError,
    DomainValidationError,
    EmptyAllowlistError,
)

METACHARACTERS = [";", "|", "&", "$", "`", "'", '"', "<", ">"]


def _injection_candidates() -> list[str]:
    """Valid-looking domains with a metacharacter placed at every position."""
    base = "api.openai.com"
    payloads = ["", "x", "rm -rf /", "$(id)", "`id`", "\n"]
    candidates = []
    for meta, payload in itertools.product(METACHARACTERS, payloads):
        candidates.append(f"{base}{meta}{payload}")
        candidates.append(f"{meta}{payload}{base}")
        candidates.append(f"api{meta}openai.com")
        candidates.append(f"api.openai{meta}{payload}.com")
    return sorted(set(candidates))


class TestIsValidDomain:
    """Accept exactly the hostname grammar."""

    @pytest.mark.parametrize(
        "domain",
        [
            "api.openai.com",
            "a1.io",
            "github.com",
            "registry.npmjs.org",
            "foo-bar.example.co",
            "X9.EXAMPLE.ORG",
            "sub.sub.sub.domain.museum",
            "0.example.com",
        ],
    )
    def test_accepts_hostnames(self, domain):
        assert is_valid_domain(domain)

    @pytest.mark.parametrize(
        "domain",
        [
            "",
            "com",
            "a.b",  # only one char before the final label
            "localhost",
            "-leading.example.com",
            ".leading.example.com",
            "example.c",  # TLD shorter than two letters
            "example.c0m",  # TLD must be letters
            "example.com.",  # trailing dot
            "bad_domain",
            "under_score.example.com",
            "space in.example.com",
            "tab\t.example.com",
            "example.com\n",
            "\nexample.com",
            "example.com\x00",
            "http://example.com",
            "example.com/path",
            "example.com:443",
            "user@example.com",
            "*.example.com",
            "münchen.de",
            "example.cöm",
            "192.168.0.1",
        ],
    )
    def test_rejects_non_hostnames(self, domain):
        assert not is_valid_domain(domain)

    @pytest.mark.parametrize("domain", _injection_candidates())
    def test_rejects_shell_metacharacters(self, domain):
        assert not is_valid_domain(domain)


class TestValidateDomain:
    """validate_domain raises with the offending entry."""

    def test_returns_valid_domain(self):
        assert validate_domain("api.openai.com") == "api.openai.com"

    def test_error_carries_domain(self):
        with pytest.raises(DomainValidationError) as exc_info:
            validate_domain("evil.com;reboot")
        assert exc_info.value.domain == "evil.com;reboot"
        assert "evil.com;reboot" in str(exc_info.value)


class TestParseAllowlist:
    """Tests for parse_allowlist."""

    def test_single_domain(self):
        assert parse_allowlist("api.openai.com").domains == ("api.openai.com",)

    def test_space_and_newline_separated(self):
        allowlist = parse_allowlist("a.example.com b.example.com\nc.example.com\t d.example.com\n")
        assert allowlist.domains == (
            "a.example.com",
            "b.example.com",
            "c.example.com",
            "d.example.com",
        )

    def test_preserves_order_and_drops_duplicates(self):
        allowlist = parse_allowlist("z.example.com a.example.com z.example.com")
        assert list(allowlist) == ["z.example.com", "a.example.com"]
        assert len(allowlist) == 2

    @pytest.mark.parametrize("raw", [None, "", "   ", "\n\t\n"])
    def test_empty_is_configuration_error(self, raw):
        with pytest.raises(EmptyAllowlistError):
            parse_allowlist(raw)

    def test_empty_allowlist_error_is_configuration_error(self):
        assert issubclass(EmptyAllowlistError, ConfigurationError)

    def test_one_bad_entry_fails_everything(self):
        with pytest.raises(DomainValidationError) as exc_info:
            parse_allowlist("good.example.com bad_domain")
        assert exc_info.value.domain == "bad_domain"

    def test_first_bad_entry_is_reported(self):
        with pytest.raises(DomainValidationError) as exc_info:
            parse_allowlist("ok.example.com $(id) also;bad")
        assert exc_info.value.domain == "$(id)"


class TestAllowlist:
    """Allowlist enforces its invariants on construction."""

    def test_direct_construction_validates(self):
        with pytest.raises(DomainValidationError):
            Allowlist(("ok.example.com", "not ok"))

    def test_direct_construction_rejects_empty(self):
        with pytest.raises(EmptyAllowlistError):
            Allowlist(())

    def test_is_immutable(self):
        allowlist = parse_allowlist("api.openai.com")
        with pytest.raises(AttributeError):
            allowlist.domains = ("evil.com",)  # type: ignore[misc]
