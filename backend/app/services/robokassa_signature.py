"""
Robokassa signature and amount helpers.

Robokassa authenticates every hop with an uppercase MD5 over colon-joined
fields. Three variants exist:

    init:    MerchantLogin:OutSum:InvId:Password1[:Shp_k=v...]
    result:  OutSum:InvId:Password2[:Shp_k=v...]   (server-to-server ResultURL)
    success: OutSum:InvId:Password1[:Shp_k=v...]   (browser SuccessURL)

Extra ``Shp_`` parameters are appended sorted by key.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import hashlib
import hmac
from typing import Mapping, Optional

SHP_PREFIX = "Shp_"


@dataclass(frozen=True)
class RobokassaCredentials:
    """Merchant login plus the two per-channel shared secrets."""

    merchant_login: str
    password1: str
    password2: str

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_login and self.password1 and self.password2)


def flatten_shp_params(shp_params: Optional[Mapping[str, str]]) -> list[str]:
    """Render extra parameters as ``Shp_<key>=<value>`` sorted by key."""
    if not shp_params:
        return []
    return [f"{SHP_PREFIX}{key}={shp_params[key]}" for key in sorted(shp_params)]


def md5_hex_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def _sign(parts: list[str], shp_params: Optional[Mapping[str, str]]) -> str:
    return md5_hex_upper(":".join(parts + flatten_shp_params(shp_params)))


def signatures_match(provided: Optional[str], expected: str) -> bool:
    """Case-insensitive constant-time comparison."""
    if not provided:
        return False
    return hmac.compare_digest(provided.upper().encode(), expected.upper().encode())


class RobokassaSignatureVerifier:
    """Computes and checks Robokassa signatures for one merchant."""

    def __init__(self, credentials: RobokassaCredentials):
        self.credentials = credentials

    def init_signature(
        self, out_sum: str, inv_id: int, shp_params: Optional[Mapping[str, str]] = None
    ) -> str:
        parts = [self.credentials.merchant_login, out_sum, str(inv_id), self.credentials.password1]
        return _sign(parts, shp_params)

    def result_signature(
        self, out_sum: str, inv_id: int, shp_params: Optional[Mapping[str, str]] = None
    ) -> str:
        return _sign([out_sum, str(inv_id), self.credentials.password2], shp_params)

    def success_signature(
        self, out_sum: str, inv_id: int, shp_params: Optional[Mapping[str, str]] = None
    ) -> str:
        return _sign([out_sum, str(inv_id), self.credentials.password1], shp_params)

    def verify_result(
        self,
        out_sum: str,
        inv_id: int,
        signature: Optional[str],
        shp_params: Optional[Mapping[str, str]] = None,
    ) -> bool:
        return signatures_match(signature, self.result_signature(out_sum, inv_id, shp_params))

    def verify_success(
        self,
        out_sum: str,
        inv_id: int,
        signature: Optional[str],
        shp_params: Optional[Mapping[str, str]] = None,
    ) -> bool:
        return signatures_match(signature, self.success_signature(out_sum, inv_id, shp_params))


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """Parse a provider amount string; returns None for anything not a finite number."""
    if value is None:
        return None
    try:
        parsed = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def amounts_equal(received: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare two decimal strings by value.

    ``"300"`` and ``"300.00"`` are equal. Any parse failure compares unequal.
    """
    left = parse_amount(received)
    right = parse_amount(expected)
    if left is None or right is None:
        return False
    return left == right
