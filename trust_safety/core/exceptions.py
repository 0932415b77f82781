"""Exception hierarchy for the trust & safety core.

Validation failures and unknown ids are reported through result objects and
boolean returns; only collaborator failures and programming errors raise.
"""


class TrustSafetyError(Exception):
    """Base exception for trust & safety errors."""
    pass


class ClassifierError(TrustSafetyError):
    """Raised by classifier implementations when classification fails."""
    pass


class InvalidPenaltyError(TrustSafetyError, ValueError):
    """Raised when a penalty type is constructed with an invalid duration."""
    pass
