"""Exception hierarchy for the causality core."""


class CausalityError(Exception):
    """Base class for all causality core errors."""


class InvalidEventError(CausalityError, ValueError):
    """An EventJSON record is malformed (missing or badly typed field)."""

    def __init__(self, reason: str, record: dict | None = None):
        self.reason = reason
        self.record = record
        super().__init__(reason)


class UnknownEventKindError(InvalidEventError):
    """An EventJSON record names a kind that does not exist."""

    def __init__(self, kind_name: object, record: dict | None = None):
        self.kind_name = kind_name
        super().__init__(f"Invalid event kind: {kind_name!r}", record)


class ContextMintError(CausalityError):
    """A causality context could not be created."""


class ConfigError(CausalityError):
    """An environment setting has an invalid value."""
