from __future__ import annotations


class TelehealthError(Exception):
    """Base class for failures raised by the telehealth core."""


class NotFoundError(TelehealthError, LookupError):
    def __init__(self, entity_kind: str, entity_id: str) -> None:
        super().__init__(f"{entity_kind} {entity_id} not found.")
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class UnauthorizedError(TelehealthError, PermissionError):
    pass


class InvalidInputError(TelehealthError, ValueError):
    pass


class InvalidTransitionError(TelehealthError, ValueError):
    pass
