"""
Error taxonomy of the governance API.

Every error carries a machine readable ``code`` and the HTTP status it maps to,
the server turns them into ``{"error": ..., "code": ...}`` responses.
"""


class GovernanceError(Exception):
    """Base exception for the governance API."""

    code = "GovernanceError"
    status_code = 500

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(GovernanceError):
    """Malformed proposal or vote input."""

    code = "InvalidInput"
    status_code = 400


class AuthorizationError(GovernanceError):
    """Caller may not perform the action, e.g. a non-admin creating a proposal."""

    code = "Forbidden"
    status_code = 403


class SignatureError(GovernanceError):
    """Ballot signature does not verify against the claimed voter."""

    code = "InvalidSignature"
    status_code = 401


class NotFoundError(GovernanceError):
    code = "NotFound"
    status_code = 404


class WindowError(GovernanceError):
    """Vote cast outside of the voting window of a proposal."""

    code = "VotingEnded"
    status_code = 400


class PowerError(GovernanceError):
    """Voter holds no voting power at the snapshot block."""

    code = "NoVotingPower"
    status_code = 400


class InfrastructureError(GovernanceError):
    """Database, cache or chain could not be reached."""

    code = "Unavailable"
    status_code = 503
