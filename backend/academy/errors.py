"""Typed failures raised by services and repositories.

Controllers translate these into HTTP responses; see `STATUS_CODES`.
"""


class AcademyError(Exception):
    """Base class for every expected failure of a store operation."""


class ValidationError(AcademyError):
    """A required field is missing or a value is outside its domain."""


class NotFoundError(AcademyError):
    """The referenced record does not exist."""


class ForeignKeyError(AcademyError):
    """A payment references a student that does not exist."""


class ConflictError(AcademyError):
    """A concurrent change made the operation impossible to complete."""


class StorageError(AcademyError):
    """The database engine failed; details are logged, never returned."""


class MalformedRequestError(AcademyError):
    """The request payload could not be parsed."""


STATUS_CODES = {
    ValidationError: 400,
    MalformedRequestError: 400,
    ForeignKeyError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageError: 500,
}


def status_code_for(exc: AcademyError) -> int:
    for kind, code in STATUS_CODES.items():
        if isinstance(exc, kind):
            return code
    return 500
