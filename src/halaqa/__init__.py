"""Halaqa — identity and center-scoped authorization for Quran memorization centers.

Resolves a human-chosen identifier (display name or email) plus an
optional center to exactly one account, checks that account's
membership in the center, verifies the password and issues a session.
The client side keeps the signed-in account's capabilities.
"""

__version__ = "0.1.0"
