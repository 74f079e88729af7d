"""Login failure taxonomy.

Every stage of the login pipeline returns either its success value or a
LoginFailure. Nothing in the pipeline raises for a domain failure.

Each kind maps to exactly one user-facing message. InvalidCredentials stays
vague: it is the only answer a password guess ever gets.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeVar, Union


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    AMBIGUOUS_IDENTIFIER = "AmbiguousIdentifier"
    NO_ACCOUNT_IN_TENANT = "NoAccountInTenant"
    NO_MEMBERSHIP = "NoMembership"
    TENANT_MISMATCH = "TenantMismatch"
    INVALID_CREDENTIALS = "InvalidCredentials"
    NETWORK_ERROR = "NetworkError"


MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "No account matches that name or email.",
    ErrorKind.AMBIGUOUS_IDENTIFIER: (
        "More than one account uses that name. Select your center and try again."
    ),
    ErrorKind.NO_ACCOUNT_IN_TENANT: (
        "No account with that name belongs to the selected center."
    ),
    ErrorKind.NO_MEMBERSHIP: (
        "This account has no role yet. Contact your center administrator."
    ),
    ErrorKind.TENANT_MISMATCH: "This account is not registered in the selected center.",
    ErrorKind.INVALID_CREDENTIALS: "Incorrect name or password.",
    ErrorKind.NETWORK_ERROR: "The server could not be reached. Please try again.",
}

# Kinds the caller can fix by retrying with different input.
RETRYABLE = frozenset({
    ErrorKind.NOT_FOUND,
    ErrorKind.AMBIGUOUS_IDENTIFIER,
    ErrorKind.NETWORK_ERROR,
})


@dataclass(frozen=True)
class LoginFailure:
    kind: ErrorKind

    @property
    def message(self) -> str:
        return MESSAGES[self.kind]

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE

    def to_dict(self) -> dict:
        return {"errorKind": self.kind.value, "message": self.message}


def fail(kind: ErrorKind) -> LoginFailure:
    return LoginFailure(kind)


T = TypeVar("T")

# A stage returns its value or the reason it stopped the pipeline.
Outcome = Union[T, LoginFailure]
