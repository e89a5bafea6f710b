"""
Error taxonomy for the planning engine.

Constraint violations are never raised: they are data returned alongside a
plan. Exceptions cross the engine boundary only for malformed requests,
missing references, storage failures and unusable settings.
"""


class PlanningError(Exception):
    """Base class for all planning engine errors."""


class InvalidInputError(PlanningError):
    """Malformed payload, failed validation or an empty required collection."""


class NotFoundError(PlanningError):
    """A referenced trailer or load does not exist."""

    def __init__(self, kind: str, ids: list[str] | str):
        self.kind = kind
        self.ids = [ids] if isinstance(ids, str) else list(ids)
        joined = ", ".join(self.ids)
        super().__init__(f"{kind} not found: {joined}")


class PersistenceError(PlanningError):
    """The durable snapshot could not be written."""


class ConfigurationError(PlanningError):
    """An environment setting is missing its expected shape."""
