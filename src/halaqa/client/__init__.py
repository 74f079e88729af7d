"""Client side of sign-in: the capability cache and the client that fills it."""

from halaqa.client.cache import LocalCapabilityCache, Profile
from halaqa.client.session import AuthClient, SessionState

__all__ = ["AuthClient", "LocalCapabilityCache", "Profile", "SessionState"]
