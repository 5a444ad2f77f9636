"""Outbound message templates and recipient addressing."""

from __future__ import annotations

DEFAULT_SUFFIX = "@c.us"


def normalize_recipient(to: str, suffix: str = DEFAULT_SUFFIX) -> str:
    """Return a fully-qualified session identifier.

    Identifiers that already carry a domain (``...@...``) pass through;
    bare numbers get ``suffix`` appended.
    """
    to = to.strip()
    if "@" in to:
        return to
    return f"{to}{suffix}"


def signature_request(doctor_name: str, signature_url: str) -> str:
    return (
        "🩺 *7G Connect - Declaration of commitment*\n\n"
        f"Hello Dr. {doctor_name},\n\n"
        "To complete your registration, please open the link below:\n\n"
        f"{signature_url}\n\n"
        "This link expires in 24 hours."
    )


def verification_code(code: str) -> str:
    return (
        "🔐 *7G Connect verification code*\n\n"
        f"Your code is: *{code}*\n\n"
        "This code is valid for 10 minutes."
    )
