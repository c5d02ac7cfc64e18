from enum import Enum


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_VERIFICATION = "pending_verification"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"

    @property
    def is_authenticated(self) -> bool:
        return self in (SessionState.PENDING_VERIFICATION, SessionState.AUTHENTICATED)


# Allowed transitions; anything else is a programming error
TRANSITIONS = {
    SessionState.UNAUTHENTICATED: {
        SessionState.PENDING_VERIFICATION,
        SessionState.AUTHENTICATED,
        SessionState.REJECTED,
    },
    SessionState.PENDING_VERIFICATION: {
        SessionState.AUTHENTICATED,
        SessionState.REJECTED,
        SessionState.UNAUTHENTICATED,
    },
    SessionState.AUTHENTICATED: {
        SessionState.PENDING_VERIFICATION,
        SessionState.REJECTED,
        SessionState.UNAUTHENTICATED,
    },
    SessionState.REJECTED: {
        SessionState.UNAUTHENTICATED,
        SessionState.AUTHENTICATED,
    },
}


def can_transition(current: SessionState, target: SessionState) -> bool:
    return current == target or target in TRANSITIONS[current]


class VerificationOutcome(str, Enum):
    VALID = "valid"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
