"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations


class CineListError(Exception):
    """Base class for errors surfaced to API consumers."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class Unauthenticated(CineListError):
    """No session, or the session is unknown or expired."""

    status_code = 401


class Conflict(CineListError):
    """The resource already exists."""

    status_code = 409


class NotFound(CineListError):
    """The requested identifier does not exist upstream or locally."""

    status_code = 404


class UpstreamUnavailable(CineListError):
    """An external call failed, timed out, or returned an unusable payload."""

    status_code = 502


class InvalidInput(CineListError, ValueError):
    """Malformed client input; never forwarded upstream."""

    status_code = 400
