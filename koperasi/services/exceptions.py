class KoperasiError(Exception):
    """Base exception for koperasi domain errors."""
    pass


class ValidationError(KoperasiError, ValueError):
    """Input rejected before any reconciliation runs (HTTP 400)."""
    pass


class NotFoundError(KoperasiError, LookupError):
    """Referenced member, product, upgrade or savings record is missing (HTTP 404)."""
    pass


class ConflictError(KoperasiError):
    """Operation clashes with current member state (HTTP 409)."""
    pass


class NoRemainingPeriodsError(ValidationError):
    """Upgrade compensation has no remaining periods to be spread over."""
    pass
