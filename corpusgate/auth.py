"""
Requester tier resolution.

A request is authenticated_lab only when lab mode is enabled AND the
request proves lab membership, either through trusted Cloudflare Access
headers or the shared lab secret. Everything else is public.
"""

import hmac
from typing import Mapping, Optional, Tuple

from corpusgate.config import GateConfig
from corpusgate.core.models import RequesterTier

LAB_SECRET_HEADER = "x-corpusgate-lab-secret"
LAB_SECRET_COOKIE = "corpusgate_lab_secret"

CF_ACCESS_JWT_HEADER   = "cf-access-jwt-assertion"
CF_ACCESS_EMAIL_HEADER = "cf-access-authenticated-user-email"


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _safe_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def has_cloudflare_access_headers(headers: Optional[Mapping[str, str]]) -> bool:
    for name in (CF_ACCESS_JWT_HEADER, CF_ACCESS_EMAIL_HEADER):
        value = _header(headers, name)
        if isinstance(value, str) and value.strip():
            return True
    return False


def has_valid_lab_secret(
    config:  GateConfig,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
) -> bool:
    """True if a secret is configured and the header or cookie matches it."""
    if not config.lab_secret:
        return False

    header_value = _header(headers, LAB_SECRET_HEADER)
    if isinstance(header_value, str) and _safe_equals(header_value, config.lab_secret):
        return True

    cookie_value = (cookies or {}).get(LAB_SECRET_COOKIE)
    if isinstance(cookie_value, str) and _safe_equals(cookie_value, config.lab_secret):
        return True

    return False


def check_lab_access(
    config:  GateConfig,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
) -> Tuple[bool, str]:
    """Return (authorized, reason) for lab-tier access."""
    if not config.lab_mode:
        return False, "Lab mode is disabled. Set CORPUSGATE_LAB_MODE=1 to enable."

    # Cloudflare headers are spoofable if the origin is reachable directly.
    if config.trust_cf_access_headers and has_cloudflare_access_headers(headers):
        return True, "Authorized (Cloudflare Access)"

    if has_valid_lab_secret(config, headers, cookies):
        return True, "Authorized (lab secret)"

    if has_cloudflare_access_headers(headers):
        return False, (
            "Cloudflare Access headers detected, but "
            "CORPUSGATE_TRUST_CF_ACCESS_HEADERS is not enabled."
        )

    if config.lab_secret:
        return False, (
            f"Invalid or missing lab secret. Provide via {LAB_SECRET_HEADER} "
            f"header or {LAB_SECRET_COOKIE} cookie."
        )

    return False, "No lab secret configured and Cloudflare Access headers are not trusted."


def resolve_requester_tier(
    config:  GateConfig,
    headers: Optional[Mapping[str, str]] = None,
    cookies: Optional[Mapping[str, str]] = None,
) -> RequesterTier:
    authorized, _ = check_lab_access(config, headers, cookies)
    return RequesterTier.AUTHENTICATED_LAB if authorized else RequesterTier.PUBLIC
