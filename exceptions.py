"""Exception hierarchy for the social care desk."""


class CareDeskError(Exception):
    """Base exception for all care desk errors."""
    pass


class RemoteStoreError(CareDeskError):
    """A read or write against the hosted tables failed."""
    pass


class AuthError(CareDeskError):
    """The hosted auth service rejected or failed a request."""
    pass
