"""Identity resolution and center-scoped authorization.

Storage-agnostic: the pipeline talks to its collaborators through the
protocols in ``halaqa.identity.ports``.
"""

from halaqa.identity.errors import ErrorKind, LoginFailure
from halaqa.identity.flow import LoginFlow, LoginResult, LoginSuccess
from halaqa.identity.roles import Capabilities, Grant, Role

__all__ = [
    "Capabilities",
    "ErrorKind",
    "Grant",
    "LoginFailure",
    "LoginFlow",
    "LoginResult",
    "LoginSuccess",
    "Role",
]
