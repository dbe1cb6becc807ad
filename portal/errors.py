"""Error taxonomy shared by services and routes.

Routes translate these into ``JSONResponse({"error": ...})`` using
``status_code``.  Lookup failures for a single live channel are never
raised; they degrade the channel entry instead.
"""
from __future__ import annotations


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Malformed or missing input, detected before any network or disk I/O."""
    status_code = 400


class AuthFailure(PortalError):
    """The OpenList backend rejected the credentials or could not be reached."""
    status_code = 400


class Unauthorized(PortalError):
    status_code = 401


class Forbidden(PortalError):
    status_code = 401


class PersistError(PortalError):
    status_code = 500


class BuildError(PortalError):
    """A catalog site could not be mapped; the whole document is dropped."""
    status_code = 500


class PlaybackAttachError(PortalError):
    """Stream resolution or player construction failed client-side."""
