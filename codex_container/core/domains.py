"""Allowlist parsing and domain validation.

Entries end up in a root-owned file read by the in-container firewall, so
anything that is not a plain hostname is refused outright. One bad entry
fails the whole allowlist; nothing is skipped.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from codex_container.core.errors import DomainValidationError, EmptyAllowlistError

# Alphanumeric first character, then letters/digits/dots/hyphens, ending in a
# dot and a two-or-more letter top-level label. ASCII only.
DOMAIN_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9.-]+\.[A-Za-z]{2,}", re.ASCII)


def is_valid_domain(domain: str) -> bool:
    """Return True if ``domain`` matches the hostname grammar."""
    return DOMAIN_PATTERN.fullmatch(domain) is not None


def validate_domain(domain: str) -> str:
    """Return ``domain`` unchanged or raise DomainValidationError."""
    if not is_valid_domain(domain):
        raise DomainValidationError(domain)
    return domain


@dataclass(frozen=True)
class Allowlist:
    """Ordered, validated, non-empty set of allowed domains."""

    domains: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.domains:
            raise EmptyAllowlistError("Allowed domain list is empty")
        for domain in self.domains:
            validate_domain(domain)

    def __iter__(self) -> Iterator[str]:
        return iter(self.domains)

    def __len__(self) -> int:
        return len(self.domains)

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "Allowlist":
        """Build an allowlist, keeping the first occurrence of duplicates."""
        seen: dict[str, None] = {}
        for entry in entries:
            seen.setdefault(validate_domain(entry), None)
        return cls(tuple(seen))


def parse_allowlist(raw: str | None) -> Allowlist:
    """Parse a whitespace-separated domain list.

    Raises:
        EmptyAllowlistError: If ``raw`` is unset or holds no entries.
        DomainValidationError: On the first entry that fails validation.
    """
    entries = (raw or "").split()
    if not entries:
        raise EmptyAllowlistError(
            "Allowed domain list is empty; set OPENAI_ALLOWED_DOMAINS to at least one domain"
        )
    return Allowlist.from_entries(entries)
