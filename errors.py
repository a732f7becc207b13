"""Error taxonomy shared by the stores, the orchestrator and the routes."""


class ReflectionError(Exception):
    """Base class for all application errors."""


class NotFoundError(ReflectionError):
    """Unknown session, verse or chapter."""


class InvalidInputError(ReflectionError):
    """Empty message or malformed request."""


class ProcessingFailedError(ReflectionError):
    """The AI responder failed: network error, timeout or contract violation."""


class StorageUnavailableError(ReflectionError):
    """The backing store could not be reached."""
