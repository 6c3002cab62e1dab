"""
HTTP middleware applied to every response.
"""

from __future__ import annotations

from fastapi import Request

# Only same-origin framing, no DNS prefetching, referrer only for our own pages.
SECURITY_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "same-origin",
    "X-Content-Type-Options": "nosniff",
}


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
