"""
CSRF exemption table.

Every route that skips CSRF verification is listed here with the reason,
so the policy can be reviewed in one place. Safe methods are always
exempt and are not listed.

The default table reproduces what the Homefy/UrbanNest backends exempt,
including a few state-changing routes (room create/update/delete, contact,
payment callbacks). Those rows are kept as-is pending a product decision.
``/api/auth/forgot-password-otp`` is the one auth bootstrap route added on
top of that table, since the OTP reset flow starts without a session.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

SAFE_METHODS: FrozenSet[str] = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class ExemptRoute:
    path: str
    methods: Optional[FrozenSet[str]] = None  # None means every method
    prefix: bool = False
    reason: str = ""

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        if self.prefix:
            return path.startswith(self.path)
        return path == self.path


def _methods(*names: str) -> FrozenSet[str]:
    return frozenset(names)


DEFAULT_EXEMPT_ROUTES: List[ExemptRoute] = [
    # Token issuance
    ExemptRoute("/api/auth/csrf-token", reason="token issuance"),
    ExemptRoute("/api/csrf-token", reason="token issuance"),
    # Authentication bootstrap: no session cookie exists yet
    ExemptRoute("/api/auth/register", reason="auth bootstrap"),
    ExemptRoute("/api/auth/login", reason="auth bootstrap"),
    ExemptRoute("/api/auth/verify-otp", reason="auth bootstrap"),
    ExemptRoute("/api/auth/forgotpassword", reason="auth bootstrap"),
    ExemptRoute("/api/auth/forgot-password", reason="auth bootstrap"),
    ExemptRoute(
        "/api/auth/forgot-password-otp",
        reason="auth bootstrap; added alongside forgot-password, not in the listing apps' table",
    ),
    ExemptRoute("/api/auth/verify-forgot-password-otp", reason="auth bootstrap"),
    ExemptRoute("/api/auth/reset-password", reason="auth bootstrap"),
    ExemptRoute("/api/auth/reset-password-with-otp", reason="auth bootstrap"),
    # Public write endpoints exempted by the listing apps
    ExemptRoute("/api/rooms/nearby", reason="public search"),
    ExemptRoute("/api/rooms", methods=_methods("POST", "PUT"), reason="listing app exemption, under review"),
    ExemptRoute("/api/rooms/", methods=_methods("DELETE"), prefix=True, reason="listing app exemption, under review"),
    ExemptRoute("/api/contact", reason="public contact form"),
    ExemptRoute("/api/email/send", reason="listing app exemption, under review"),
    ExemptRoute("/uploads/", prefix=True, reason="static uploads"),
    ExemptRoute("/api/esewa/", prefix=True, reason="payment gateway callbacks"),
    ExemptRoute("/api/audit/", prefix=True, reason="listing app exemption, under review"),
]


class CSRFExemptions:
    def __init__(self, routes: Iterable[ExemptRoute] = DEFAULT_EXEMPT_ROUTES):
        self.routes = list(routes)

    @classmethod
    def from_config(cls, rows: Optional[list]) -> "CSRFExemptions":
        """Build from ``CSRF_EXEMPT_ROUTES`` rows; ``None`` keeps the default table."""
        if rows is None:
            return cls()
        routes = []
        for row in rows:
            methods = row.get("methods")
            routes.append(
                ExemptRoute(
                    path=row["path"],
                    methods=frozenset(m.upper() for m in methods) if methods else None,
                    prefix=bool(row.get("prefix", False)),
                    reason=row.get("reason", ""),
                )
            )
        return cls(routes)

    def is_exempt(self, method: str, path: str) -> bool:
        if method.upper() in SAFE_METHODS:
            return True
        return any(route.matches(method, path) for route in self.routes)
