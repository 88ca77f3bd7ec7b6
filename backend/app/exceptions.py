"""Domain exceptions shared by the tariff, matching, tax and risk services.

Services raise these; API routers translate them to HTTP errors.
"""


class InvalidInputError(ValueError):
    """Malformed code or non-numeric rate, rejected at the boundary."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class NotFoundError(ValueError):
    """A batch, item or record addressed by id does not exist."""


class InvalidTransitionError(ValueError):
    """A review action that the item's current match status does not allow."""


class RepositoryError(RuntimeError):
    """The tariff catalog or a history/record store failed or returned bad data."""
