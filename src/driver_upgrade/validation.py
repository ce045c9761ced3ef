"""Input validation helpers for controller configuration values."""

from __future__ import annotations

import re

# RFC 1123 label: lowercase alphanumeric and hyphens, 1-63 chars, starts/ends with alphanumeric
_DRIVER_NAME_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?$")

# RFC 1123 subdomain: dot-separated labels, at most 253 chars
_DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?)*$")


def validate_driver_name(driver_name: str) -> None:
    """Validate the driver name used to build label and annotation keys."""
    if not _DRIVER_NAME_RE.match(driver_name):
        msg = f"Invalid driver name: {driver_name!r}. Must be a valid RFC 1123 label."
        raise ValueError(msg)


def validate_domain(domain: str) -> None:
    """Validate the key prefix domain (e.g. 'nvidia.com')."""
    if len(domain) > 253 or not _DOMAIN_RE.match(domain):
        msg = f"Invalid domain: {domain!r}. Must be a valid RFC 1123 subdomain."
        raise ValueError(msg)
