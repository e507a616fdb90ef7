"""Project-level exception hierarchy."""


class SessionError(Exception):
    """Base for all session middleware exceptions."""


class StoreError(SessionError):
    """A session store operation failed."""


class SessionLoadError(StoreError):
    """Reading or decoding a stored session failed."""


class SessionSaveError(StoreError):
    """Writing or destroying a stored session failed."""


class StoreUnavailableError(StoreError):
    """The session store did not become ready in time."""
