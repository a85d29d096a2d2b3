"""
Shared-secret check for admin endpoints.

Admin callers send the configured password in a `password` header. There
are no per-user credentials; an empty configured password disables the
admin endpoints entirely.
"""
import hmac
from typing import Optional

from ..config import get_settings


def verify_admin_password(provided: Optional[str], expected: Optional[str] = None) -> bool:
    """
    Return True if provided matches the configured admin password.

    Returns False if:
    - No admin password is configured
    - No password was provided
    - The passwords differ
    """
    if expected is None:
        expected = get_settings().admin_password

    if not expected or not provided:
        return False

    return hmac.compare_digest(provided.encode(), expected.encode())
