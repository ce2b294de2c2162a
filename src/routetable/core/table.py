"""Rule table and request matcher.

This module implements the matching side of the routing engine:
- Building the flat, ordered rule table from nested rule definitions
- Collecting property rules into a side map
- First-match-wins request matching and target resolution

The table is built once and is read-only afterwards, so a single instance
can serve any number of concurrent ``match`` calls without locking. To
reload routes, build a new table and swap the reference.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from routetable.core.errors import MissingIncludeSource
from routetable.core.matched import MatchedRoute
from routetable.core.patterns import trim_path
from routetable.core.rule import (
    ControllerTarget,
    FlatRule,
    Rule,
    RuleLocator,
    RuleProperty,
    Target,
    ViewTarget,
)

logger = logging.getLogger(__name__)

STANDARD_METHODS = ("DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT")

_TARGET_VARIABLE = re.compile(r"\{([^{}]+)\}")


def substitute_variables(value: str, args: Mapping[str, Any]) -> str:
    """Replace ``{key}`` occurrences in a string with values from ``args``.

    Unknown keys are left in place verbatim.
    """

    def replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in args:
            return str(args[key])
        return match.group(0)

    return _TARGET_VARIABLE.sub(replace, value)


def resolve_target(target: Target, args: Mapping[str, Any]) -> Target:
    """Substitute matched arguments into the string parts of a target.

    Args:
        target: Target as declared on the rule
        args: Final argument mapping of the match

    Returns:
        A new target for views and string controller references; the same
        object for callables and class-based controllers
    """
    if isinstance(target, ViewTarget):
        return ViewTarget(substitute_variables(target.name, args))

    if isinstance(target, ControllerTarget):
        controller = target.controller
        if isinstance(controller, str):
            controller = substitute_variables(controller, args)
        method = substitute_variables(target.method, args)
        if controller is target.controller and method == target.method:
            return target
        return ControllerTarget(controller, method)

    return target


class RuleTable:
    """Ordered table of flattened rules.

    Responsibilities:
    - Flattening top-level rules in declaration order
    - Separating property rules from routable ones
    - Matching requests against the table, first match wins
    """

    def __init__(
        self,
        rules: Optional[Union[Sequence[Rule], str]] = None,
        locator: Optional[RuleLocator] = None,
    ):
        """Initialize the rule table.

        Args:
            rules: Top-level rules, or a source name for the locator. When
                given, the table is built immediately.
            locator: Resolves string rule sources and includes
        """
        self.locator = locator
        self._rules: Tuple[FlatRule, ...] = ()
        self._properties: Mapping[str, Any] = MappingProxyType({})
        self._built = False

        if rules is not None:
            self.set_rules(rules)

    def set_rules(self, rules: Union[Sequence[Rule], str]) -> None:
        """Build the table.

        Args:
            rules: Top-level rules in priority order, or a source name to
                load them from through the locator

        Raises:
            RuntimeError: If the table was already built
            InvalidPattern: If any rule has a malformed path template
            InvalidRule: If a leaf rule has no target
            MissingIncludeSource: If an include source cannot be found
        """
        if self._built:
            raise RuntimeError("Rule table already built; create a new table to reload rules")

        if isinstance(rules, str):
            if self.locator is None:
                raise MissingIncludeSource(rules, "cannot be loaded without a rule locator")
            rules = self.locator.locate(rules)

        table: List[FlatRule] = []
        properties: Dict[str, Any] = {}

        for raw_rule in rules:
            for record in raw_rule.get_processed_data(self.locator):
                if isinstance(record, RuleProperty):
                    # Last declaration wins
                    properties[record.name] = record.value
                    continue
                table.append(record)

        self._rules = tuple(table)
        self._properties = MappingProxyType(properties)
        self._built = True

        logger.info(
            f"Rule table built with {len(self._rules)} rules",
            extra={"rule_count": len(self._rules), "property_count": len(properties)},
        )

    @property
    def rules(self) -> Tuple[FlatRule, ...]:
        return self._rules

    @property
    def properties(self) -> Mapping[str, Any]:
        return self._properties

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[FlatRule]:
        return iter(self._rules)

    def match(
        self,
        method: str,
        hostname: Optional[str] = None,
        ajax: bool = False,
        path: str = "",
    ) -> Optional[MatchedRoute]:
        """Match a request against the table.

        Rules are tried in table order and the first one whose constraints
        and pattern both match wins, whatever its specificity.

        Args:
            method: HTTP method
            hostname: Value of the Host header
            ajax: Whether the request carries the AJAX indicator
            path: Percent-decoded request path

        Returns:
            MatchedRoute if a rule matches, None otherwise
        """
        method = method.upper()
        trimmed_path = trim_path(path)

        for rule in self._rules:
            if not rule.accepts(method, hostname, ajax):
                continue

            path_args = rule.pattern.match(trimmed_path)
            if path_args is None:
                continue

            # Path variables win over static arguments
            args = {**rule.args, **path_args}

            matched = MatchedRoute(
                name=rule.name,
                rule=rule,
                target_type=rule.target_type,
                target=resolve_target(rule.target, args),
                args=MappingProxyType(args),
            )
            logger.debug(
                f"Route matched: {method} {rule.path!r} ({rule.name})",
                extra={"route_name": rule.name, "path": trimmed_path, "method": method},
            )
            return matched

        logger.debug(
            f"No route matched for {method} {path}",
            extra={"path": trimmed_path, "method": method, "hostname": hostname},
        )
        return None

    def get_allowed_methods(
        self, path: str, hostname: Optional[str] = None, ajax: bool = False
    ) -> List[str]:
        """Get the HTTP methods under which a path would match.

        Used to tell "405 Method Not Allowed" from "404 Not Found".

        Args:
            path: Percent-decoded request path
            hostname: Value of the Host header
            ajax: Whether the request carries the AJAX indicator

        Returns:
            Sorted list of methods; rules without a method constraint
            contribute every standard method
        """
        trimmed_path = trim_path(path)
        allowed: set = set()

        for rule in self._rules:
            if not rule.accepts_origin(hostname, ajax):
                continue
            if rule.pattern.match(trimmed_path) is None:
                continue
            allowed.update(rule.methods or STANDARD_METHODS)

        return sorted(allowed)


def create_table(
    rules: Union[Sequence[Rule], str], locator: Optional[RuleLocator] = None
) -> RuleTable:
    """Create and build a rule table (convenience function).

    Args:
        rules: Top-level rules or a source name
        locator: Resolves string rule sources and includes

    Returns:
        Built RuleTable instance
    """
    return RuleTable(rules, locator=locator)
