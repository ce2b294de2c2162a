"""Result of a successful route match."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from routetable.core.rule import FlatRule, Target, TargetType


@dataclass(frozen=True)
class MatchedRoute:
    """A matched rule with its target resolved for one request.

    Attributes:
        name: Route name, if the rule has one
        rule: The table record that matched
        target_type: Kind of target
        target: Target with ``{var}`` placeholders substituted
        args: Path variables merged over the rule's static arguments
    """

    name: Optional[str]
    rule: FlatRule
    target_type: TargetType
    target: Target
    args: Mapping[str, Any]

    def __str__(self) -> str:
        methods = ",".join(sorted(self.rule.methods)) or "ANY"
        parts = [
            methods,
            f"'{self.rule.path}'",
            "->",
            self.target_type.value.upper(),
            str(self.target),
        ]
        if self.name:
            parts.append(f"({self.name})")
        return " ".join(parts)
