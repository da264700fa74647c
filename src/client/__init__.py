"""
Client-side security helpers for talking to the API.
"""

from .http import HttpClient, HttpResponse
from .output_sanitizer import sanitize_outgoing
from .retry import attempt
from .security_agent import ClientSecurityAgent, ClientSession, CSRFTokenUnavailable

__all__ = [
    "HttpClient",
    "HttpResponse",
    "sanitize_outgoing",
    "attempt",
    "ClientSecurityAgent",
    "ClientSession",
    "CSRFTokenUnavailable",
]
