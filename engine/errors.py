"""
Error taxonomy for the fixture engine.

Every rejected operation raises one of these with a human-readable message.
The blueprints translate them into JSON responses:

{
    "success": false,
    "error": "ConflictError",
    "message": "Venue \"Main Ground\" is already booked ..."
}
"""


class EngineError(Exception):
    """Base class for rejected engine operations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            'success': False,
            'error': type(self).__name__,
            'message': self.message,
        }


class ValidationError(EngineError):
    """Input or configuration cannot support the requested operation."""

    status_code = 400


class NotFoundError(EngineError):
    status_code = 404


class ConflictError(EngineError):
    """Venue/time double booking."""

    status_code = 409


class IncompleteResultError(EngineError):
    """A knockout match cannot be completed without a resolvable winner."""

    status_code = 422
