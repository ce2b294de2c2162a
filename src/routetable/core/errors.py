"""Exception hierarchy for the routing engine.

Shared by the pattern compiler, rule builder, table and loader so every
module raises and catches the same types. Failing to find a route is not
an error: ``RuleTable.match`` returns ``None`` instead.
"""


class RoutingError(Exception):
    """Base for all routing errors."""


class InvalidPattern(RoutingError, ValueError):
    """Raised when a path template cannot be compiled.

    Aborts table construction: a rule that silently never matches is worse
    than a startup failure.
    """

    def __init__(self, template: str, reason: str):
        self.template = template
        self.reason = reason
        super().__init__(f"Invalid path template {template!r}: {reason}")


class InvalidRule(RoutingError, ValueError):
    """Raised when a rule definition cannot be turned into a table entry."""


class MissingIncludeSource(RoutingError, LookupError):
    """Raised when an included rule source cannot be located."""

    def __init__(self, source: str, reason: str = "not found"):
        self.source = source
        self.reason = reason
        super().__init__(f"Rule source {source!r} {reason}")


class RuleDefinitionError(RoutingError, ValueError):
    """Raised when a rule file fails validation."""
