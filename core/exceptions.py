"""
Custom exceptions

All tracker errors live here so the API layer can map them in one place
"""


class KhatamException(Exception):
    """Base class for all tracker errors"""
    pass


# ============ Transport errors ============

class TransportError(KhatamException):
    """Network or persistence layer unreachable"""
    pass


class StoreUnavailable(TransportError):
    """A store operation failed at the persistence layer"""
    def __init__(self, relation, cause=None):
        self.relation = relation
        self.cause = cause
        super().__init__(f"Store '{relation}' unavailable: {cause}")


# ============ Claim errors ============

class ClaimValidationError(KhatamException):
    """Claim rejected before touching any store (no selection, bad index, empty name)"""
    pass


class ClaimConflict(KhatamException):
    """Some requested units were already claimed by someone else"""
    def __init__(self, claimed, rejected):
        self.claimed = list(claimed)
        self.rejected = list(rejected)
        super().__init__(
            f"Units {self.rejected} were already claimed"
        )


# ============ Metadata errors ============

class MetadataNotInitialized(KhatamException):
    """Cycle metadata row does not exist yet (no reconciliation has run)"""
    pass
