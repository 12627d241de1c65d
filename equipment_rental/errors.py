"""Error types raised by the store and the reconciliation engine.

Each error carries the HTTP status the API layer answers with; the store
itself never builds responses.
"""


class RentalAppError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"message": self.message}


class ValidationError(RentalAppError):
    """Malformed payload or a reference to a record that does not exist."""

    status_code = 400


class NotFoundError(RentalAppError):
    status_code = 404


class ConflictError(RentalAppError):
    """The write would break an invariant (double booking, orphaned rows)."""

    status_code = 409
