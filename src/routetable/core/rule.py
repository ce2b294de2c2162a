"""Routing rule definitions.

This module implements the declarative side of the routing engine:
- Dispatch targets (controller, callable, view) as a closed set of types
- The fluent ``Rule`` builder and its factory helpers
- Flattening of nested ``include`` trees into matcher-ready records
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Sequence, Union

from routetable.core.errors import InvalidRule, MissingIncludeSource
from routetable.core.patterns import CompiledPattern, compile_pattern, join_paths, trim_path

logger = logging.getLogger(__name__)


class TargetType(Enum):
    """Kind of dispatch target a rule resolves to."""

    CONTROLLER = "controller"
    CALLABLE = "callable"
    VIEW = "view"


@dataclass(frozen=True)
class ControllerTarget:
    """A controller class (or its import name) and the method to call on it."""

    controller: Any
    method: str = "default"

    def __str__(self) -> str:
        return f"{_display_name(self.controller)}::{self.method}"


@dataclass(frozen=True)
class CallableTarget:
    """Any invocable object."""

    func: Callable[..., Any]

    def __str__(self) -> str:
        return _display_name(self.func)


@dataclass(frozen=True)
class ViewTarget:
    """A view (template) name, possibly holding ``{var}`` placeholders."""

    name: str

    def __str__(self) -> str:
        return self.name


Target = Union[ControllerTarget, CallableTarget, ViewTarget]

_TARGET_TYPES = {
    ControllerTarget: TargetType.CONTROLLER,
    CallableTarget: TargetType.CALLABLE,
    ViewTarget: TargetType.VIEW,
}


def _display_name(obj: Any) -> str:
    if isinstance(obj, str):
        return obj
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
    if qualname is None:
        return repr(obj)
    return f"{module}.{qualname}" if module else qualname


@dataclass(frozen=True, eq=False)
class FlatRule:
    """Matcher-ready rule record produced by flattening.

    ``target`` is stored unsubstituted; placeholders are filled in per match.
    """

    methods: frozenset
    hostname: Optional[str]
    ajax: Optional[bool]
    path: str
    pattern: CompiledPattern
    target: Target
    args: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    name: Optional[str] = None

    @property
    def target_type(self) -> TargetType:
        return _TARGET_TYPES[type(self.target)]

    def accepts(self, method: str, hostname: Optional[str], ajax: bool) -> bool:
        """Check the non-path constraints of this record.

        Args:
            method: Uppercase HTTP method
            hostname: Request hostname, if known
            ajax: Whether the request was flagged as AJAX

        Returns:
            True if method, hostname and AJAX constraints all hold
        """
        if self.methods and method not in self.methods:
            return False
        return self.accepts_origin(hostname, ajax)

    def accepts_origin(self, hostname: Optional[str], ajax: bool) -> bool:
        """Check the hostname and AJAX constraints only."""
        if self.hostname and self.hostname != hostname:
            return False
        if self.ajax and not ajax:
            return False
        return True


@dataclass(frozen=True)
class RuleProperty:
    """A non-routable name/value pair declared among the rules."""

    name: str
    value: Any


ProcessedRule = Union[FlatRule, RuleProperty]


class RuleLocator(Protocol):
    """Resolves an include source (file, module reference) to rules."""

    def locate(self, source: str) -> Sequence["Rule"]:
        ...


class Rule:
    """A routing rule builder.

    Every setter returns the rule so definitions read as one chain::

        Rule.get("blog/{slug}").view("blog/post").name("blog_post")
        Rule.path("admin").include([
            Rule.get("users", ("app.admin.Users", "list")),
        ])

    A rule with included children contributes no entry of its own; its
    path becomes the prefix of every descendant.
    """

    def __init__(self) -> None:
        self._methods: tuple = ()
        self._hostname: Optional[str] = None
        self._ajax: Optional[bool] = None
        self._path = ""
        self._name: Optional[str] = None
        self._target: Optional[Target] = None
        self._args: dict = {}
        self._property: Optional[RuleProperty] = None
        self._included: list = []

    def __repr__(self) -> str:
        methods = ",".join(self._methods) or "ANY"
        return f"<Rule {methods} {self._path!r} -> {self._target}>"

    # Constraints

    def method(self, *methods: str) -> "Rule":
        """Set the allowed HTTP methods. No methods means any method."""
        self._methods = tuple(m.upper() for m in methods)
        return self

    def methods(self, *methods: str) -> "Rule":
        """Alias of :meth:`method`."""
        return self.method(*methods)

    def hostname(self, hostname: Optional[str]) -> "Rule":
        self._hostname = hostname or None
        return self

    def ajax(self, active: Optional[bool] = True) -> "Rule":
        """Require AJAX requests. Only True restricts matching."""
        self._ajax = active
        return self

    def name(self, name: str) -> "Rule":
        self._name = name
        return self

    def args(self, mapping: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "Rule":
        """Add static arguments.

        Values given here override earlier ``args`` calls, but never the
        variables extracted from the path at match time.
        """
        new_args = dict(mapping or {})
        new_args.update(kwargs)
        self._args = {**self._args, **new_args}
        return self

    def set_path(self, path: Optional[str]) -> "Rule":
        if path:
            self._path = trim_path(path)
        return self

    def get_path(self) -> str:
        return self._path

    # Targets

    def controller(self, controller: Any, method: str = "default") -> "Rule":
        """Dispatch to ``method`` of a controller class or its import name."""
        self._target = ControllerTarget(controller, method)
        return self

    def callable(self, func: Callable[..., Any]) -> "Rule":
        if not callable(func):
            raise InvalidRule(f"Callable target expected, got {func!r}")
        self._target = CallableTarget(func)
        return self

    def view(self, name: str) -> "Rule":
        self._target = ViewTarget(name)
        return self

    def set_target(self, target: Any = None) -> "Rule":
        """Set the target according to its shape.

        - ``(controller, method)`` pair: controller target
        - a class or a plain string: controller target, method ``default``
        - any other callable: callable target
        - a target instance is used as is; None leaves the target unset
        """
        if target is None:
            return self
        if isinstance(target, (ControllerTarget, CallableTarget, ViewTarget)):
            self._target = target
        elif isinstance(target, (tuple, list)):
            if not 1 <= len(target) <= 2:
                raise InvalidRule(f"Controller target must be (controller, method), got {target!r}")
            self.controller(*target)
        elif isinstance(target, (str, type)):
            self.controller(target)
        elif callable(target):
            self.callable(target)
        else:
            raise InvalidRule(f"Unsupported target {target!r}")
        return self

    @property
    def target(self) -> Optional[Target]:
        return self._target

    # Nesting

    def include(self, rules: Union["Rule", Iterable["Rule"], str]) -> "Rule":
        """Attach child rules, prefixed with this rule's path.

        Args:
            rules: A rule, an iterable of rules, or a source name resolved by
                a :class:`RuleLocator` when the table is built
        """
        if isinstance(rules, (Rule, str)):
            self._included.append(rules)
        else:
            self._included.extend(rules)
        return self

    @property
    def included(self) -> tuple:
        return tuple(self._included)

    # Flattening

    def get_processed_data(
        self, locator: Optional[RuleLocator] = None, prefix: str = "", trail: tuple = ()
    ) -> tuple:
        """Flatten this rule into matcher-ready records.

        The rule tree is not modified. Records come out depth-first in
        declaration order, which is the order they are tried in.

        Args:
            locator: Resolves string include sources
            prefix: Path of the enclosing rules
            trail: Enclosing rules and include sources, used to detect cycles

        Returns:
            Tuple of FlatRule and RuleProperty records

        Raises:
            InvalidPattern: If a path template is malformed
            InvalidRule: If a leaf rule has no target or an include cycles back
            MissingIncludeSource: If an include source cannot be resolved
        """
        if self._property is not None:
            return (self._property,)

        path = join_paths(prefix, self._path)

        if self._included:
            if self in trail:
                raise InvalidRule(f"Rule for path {path!r} includes itself")
            trail = (*trail, self)
            records: list = []
            for child, child_trail in self._resolve_included(locator, trail):
                records.extend(child.get_processed_data(locator, path, child_trail))
            return tuple(records)

        if self._target is None:
            raise InvalidRule(f"Rule for path {path!r} has no target")

        return (
            FlatRule(
                methods=frozenset(self._methods),
                hostname=self._hostname,
                ajax=self._ajax,
                path=path,
                pattern=compile_pattern(path),
                target=self._target,
                args=MappingProxyType(dict(self._args)),
                name=self._name,
            ),
        )

    def _resolve_included(self, locator: Optional[RuleLocator], trail: tuple) -> list:
        resolved = []
        for entry in self._included:
            if isinstance(entry, Rule):
                resolved.append((entry, trail))
                continue
            if locator is None:
                raise MissingIncludeSource(entry, "cannot be loaded without a rule locator")
            if entry in trail:
                raise InvalidRule(f"Rule source {entry!r} includes itself")
            logger.debug("Resolving included rules", extra={"source": entry, "prefix": self._path})
            source_trail = (*trail, entry)
            resolved.extend((rule, source_trail) for rule in locator.locate(entry))
        return resolved

    # Factories

    @classmethod
    def path(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        """A rule for any HTTP method."""
        return cls().set_path(path).set_target(target)

    @classmethod
    def get(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("GET").set_path(path).set_target(target)

    @classmethod
    def post(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("POST").set_path(path).set_target(target)

    @classmethod
    def put(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("PUT").set_path(path).set_target(target)

    @classmethod
    def patch(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("PATCH").set_path(path).set_target(target)

    @classmethod
    def delete(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("DELETE").set_path(path).set_target(target)

    @classmethod
    def options(cls, path: Optional[str] = None, target: Any = None) -> "Rule":
        return cls().method("OPTIONS").set_path(path).set_target(target)

    @classmethod
    def default(cls, target: Any = None) -> "Rule":
        """A GET rule for the empty path (the site root)."""
        return cls.get("", target)

    @classmethod
    def property(cls, name: str, value: Any) -> "Rule":
        """A non-routable property, merged into the table's properties."""
        rule = cls()
        rule._property = RuleProperty(name, value)
        return rule
