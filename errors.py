class PickupError(Exception):
    """Base class for every error the pickup core raises."""


class ConstraintViolation(PickupError):
    """Local check failed; raised before anything is written to the store."""


class PermissionDenied(ConstraintViolation):
    pass


class InvalidState(ConstraintViolation):
    pass


class ValidationError(ConstraintViolation):
    pass


class StoreError(PickupError):
    """The document store could not serve the call."""


class Unavailable(StoreError):
    pass


class NotFound(StoreError):
    pass
