"""Error taxonomy for the tournament back office.

Every error a caller can recover from derives from BackofficeError and carries
the HTTP status the API answers with plus a short machine-readable code.
"""


class BackofficeError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {'error': self.message, 'code': self.code}


class NotFoundError(BackofficeError):
    status_code = 404
    code = "not_found"


class InvalidStateError(BackofficeError):
    status_code = 400
    code = "invalid_state"


class ValidationError(BackofficeError):
    status_code = 400
    code = "validation_error"


class ConflictError(BackofficeError):
    status_code = 409
    code = "conflict"


class ConcurrentWriteError(Exception):
    """The tournament row changed between load and save."""

    def __init__(self, tournament_id: str):
        self.tournament_id = tournament_id
        super().__init__(f"Tournament {tournament_id} was modified concurrently")
