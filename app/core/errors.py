"""
Registry error taxonomy.

Every error aborts the enclosing ledger transaction, so committed state is
left exactly as it was before the failing call.
"""
from fastapi import status


class RegistryError(Exception):
    """Base class for all registry failures."""

    code = "registry_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotAuthorized(RegistryError):
    """Caller lacks the required role or identity match."""

    code = "not_authorized"
    status_code = status.HTTP_403_FORBIDDEN


class BatchNotFound(RegistryError):
    """Referenced batch id was never allocated."""

    code = "batch_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class NameNotSet(RegistryError):
    """Manufacturer has no bound display name."""

    code = "name_not_set"
    status_code = 422


class InvalidMedicineId(RegistryError):
    """A medicine id that is not a positive 64-bit integer was submitted."""

    code = "invalid_medicine_id"
    status_code = 422


class InvalidInput(RegistryError):
    """Empty name or null address on bind/grant."""

    code = "invalid_input"
    status_code = 422
