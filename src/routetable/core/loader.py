"""Rule sources for the routing engine.

This module resolves ``include("source")`` references and table sources:
- YAML (or JSON) rule files, validated with pydantic
- ``package.module:attribute`` references to Python rule lists and
  controller classes with declared routes
"""

import importlib
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from routetable.core.config import RouteTableConfig
from routetable.core.declare import collect_rules
from routetable.core.errors import MissingIncludeSource, RuleDefinitionError
from routetable.core.rule import Rule
from routetable.core.table import RuleTable

logger = logging.getLogger(__name__)

RULE_FILE_SUFFIXES = (".yaml", ".yml", ".json")

# Keys that both set the path and restrict the method; ``path`` allows any.
_METHOD_KEYS = ("get", "post", "put", "patch", "delete", "options")


class RuleDefinition(BaseModel):
    """One rule entry of a rule file."""

    model_config = ConfigDict(extra="forbid")

    path: str | None = Field(default=None, description="Path template, any method")
    get: str | None = Field(default=None, description="Path template, GET only")
    post: str | None = Field(default=None, description="Path template, POST only")
    put: str | None = Field(default=None, description="Path template, PUT only")
    patch: str | None = Field(default=None, description="Path template, PATCH only")
    delete: str | None = Field(default=None, description="Path template, DELETE only")
    options: str | None = Field(default=None, description="Path template, OPTIONS only")
    methods: list[str] = Field(default_factory=list, description="Allowed HTTP methods")
    hostname: str | None = Field(default=None, description="Exact hostname to match")
    ajax: bool | None = Field(default=None, description="Require AJAX requests")
    name: str | None = Field(default=None, description="Route name")
    controller: str | list[str] | None = Field(
        default=None, description="Controller import name, optionally with method"
    )
    callable: str | None = Field(default=None, description="Callable as module:attribute")
    view: str | None = Field(default=None, description="View name")
    args: dict[str, Any] = Field(default_factory=dict, description="Static arguments")
    include: Union[str, list["RuleDefinition"], None] = Field(
        default=None, description="Child rules or a rule source to include"
    )

    @field_validator("methods", mode="before")
    @classmethod
    def validate_methods(cls, v: Any) -> Any:
        """Accept a single method name and normalize case."""
        if isinstance(v, str):
            v = [v]
        return [m.upper() for m in v] if isinstance(v, list) else v

    @field_validator("controller")
    @classmethod
    def validate_controller(cls, v: str | list[str] | None) -> str | list[str] | None:
        """Validate the controller is a name or a [name, method] pair."""
        if isinstance(v, list) and not 1 <= len(v) <= 2:
            raise ValueError(f"controller must be [name] or [name, method], got {v}")
        return v

    @model_validator(mode="after")
    def validate_shape(self) -> "RuleDefinition":
        """Check the path keys and targets given fit a leaf or an include rule."""
        path_keys = [k for k in ("path", *_METHOD_KEYS) if getattr(self, k) is not None]
        if len(path_keys) > 1:
            raise ValueError(f"Only one of path/{'/'.join(_METHOD_KEYS)} allowed, got {path_keys}")

        targets = [k for k in ("controller", "callable", "view") if getattr(self, k) is not None]
        if len(targets) > 1:
            raise ValueError(f"Only one target allowed, got {targets}")
        if self.include is None:
            if not targets:
                raise ValueError("Rule needs a target (controller, callable, view) or an include")
            return self

        # Included rules only inherit the path prefix
        extra = [k for k in path_keys if k != "path"] + targets
        extra += [k for k in ("methods", "hostname", "ajax", "name", "args") if getattr(self, k)]
        if extra:
            raise ValueError(f"Rules with include only take a path, got {extra}")
        return self


RuleDefinition.model_rebuild()


class RuleFile(BaseModel):
    """Top-level structure of a rule file."""

    model_config = ConfigDict(extra="forbid")

    properties: dict[str, Any] = Field(default_factory=dict, description="Property rules")
    rules: list[RuleDefinition] = Field(default_factory=list, description="Rules in priority order")


def import_object(reference: str) -> Any:
    """Import ``package.module:attribute`` (dots allowed in the attribute).

    Raises:
        ImportError: If the module cannot be imported
        AttributeError: If the attribute does not exist
    """
    module_name, _, attribute = reference.partition(":")
    obj: Any = importlib.import_module(module_name)
    for part in attribute.split(".") if attribute else ():
        obj = getattr(obj, part)
    return obj


class FileRuleLocator:
    """Locates rule sources on disk or on the import path.

    Sources ending in ``.yaml``, ``.yml`` or ``.json`` (or without a ``:``)
    are files, resolved against ``base_dir`` when relative. Sources of the
    form ``package.module:attribute`` name a list of rules, a callable
    returning one, or a controller class with declared routes.
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """Initialize the locator.

        Args:
            base_dir: Directory for relative file sources (default: cwd)
        """
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    def locate(self, source: str) -> Sequence[Rule]:
        """Resolve a source to its rules.

        Args:
            source: File path or ``module:attribute`` reference

        Returns:
            Rules in declaration order

        Raises:
            MissingIncludeSource: If the source does not exist
            RuleDefinitionError: If a rule file is invalid
        """
        if self._is_file_source(source):
            return self.load_file(self._resolve_path(source))
        return self._load_object(source)

    @staticmethod
    def _is_file_source(source: str) -> bool:
        return source.lower().endswith(RULE_FILE_SUFFIXES) or ":" not in source

    def _resolve_path(self, source: str) -> Path:
        path = Path(source)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    def load_file(self, path: Path) -> list[Rule]:
        """Load and validate a rule file.

        Nested string includes are made relative to the file's directory.
        """
        if not path.is_file():
            raise MissingIncludeSource(str(path))

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RuleDefinitionError(f"Cannot parse rule file {path}: {e}") from e

        if isinstance(data, list):
            data = {"rules": data}

        try:
            rule_file = RuleFile.model_validate(data)
        except ValidationError as e:
            raise RuleDefinitionError(f"Invalid rule file {path}: {e}") from e

        rules = [Rule.property(name, value) for name, value in rule_file.properties.items()]
        rules.extend(build_rule(definition, path.parent) for definition in rule_file.rules)

        logger.debug(
            f"Loaded {len(rules)} rules from {path}",
            extra={"source": str(path), "rule_count": len(rules)},
        )
        return rules

    def _load_object(self, source: str) -> list[Rule]:
        try:
            obj = import_object(source)
        except (ImportError, AttributeError) as e:
            raise MissingIncludeSource(source, f"cannot be imported: {e}") from e

        if isinstance(obj, type):
            return collect_rules(obj)
        if callable(obj) and not isinstance(obj, Rule):
            obj = obj()
        if isinstance(obj, Rule):
            return [obj]

        try:
            rules = list(obj)
        except TypeError as e:
            raise RuleDefinitionError(f"{source} must provide Rule objects, got {obj!r}") from e
        for rule in rules:
            if not isinstance(rule, Rule):
                raise RuleDefinitionError(f"{source} must provide Rule objects, got {rule!r}")
        return rules


def _resolve_callable(reference: str) -> Callable[..., Any]:
    try:
        func = import_object(reference)
    except (ImportError, AttributeError) as e:
        raise RuleDefinitionError(f"Cannot import callable {reference!r}: {e}") from e
    if not callable(func):
        raise RuleDefinitionError(f"{reference!r} is not callable")
    return func


def build_rule(definition: RuleDefinition, base_dir: Optional[Path] = None) -> Rule:
    """Turn a validated rule definition into a Rule.

    Args:
        definition: Validated rule entry
        base_dir: Directory that relative file includes are resolved against

    Returns:
        Rule with the same constraints, target and children
    """
    rule = Rule()

    for key in _METHOD_KEYS:
        template = getattr(definition, key)
        if template is not None:
            rule.method(key.upper()).set_path(template)
            break
    else:
        rule.set_path(definition.path)

    if definition.methods:
        rule.method(*definition.methods)
    if definition.hostname:
        rule.hostname(definition.hostname)
    if definition.ajax is not None:
        rule.ajax(definition.ajax)
    if definition.name:
        rule.name(definition.name)
    if definition.args:
        rule.args(definition.args)

    if definition.controller is not None:
        rule.set_target(definition.controller)
    elif definition.callable is not None:
        rule.callable(_resolve_callable(definition.callable))
    elif definition.view is not None:
        rule.view(definition.view)

    if isinstance(definition.include, str):
        source = definition.include
        if base_dir is not None and FileRuleLocator._is_file_source(source):
            source_path = Path(source)
            if not source_path.is_absolute():
                source = str((base_dir / source_path).resolve())
        rule.include(source)
    elif definition.include:
        rule.include([build_rule(child, base_dir) for child in definition.include])

    return rule


def load_table(config: RouteTableConfig) -> RuleTable:
    """Build a rule table from configuration.

    Args:
        config: Configuration naming the routes file

    Returns:
        Built RuleTable

    Raises:
        ValueError: If no routes file is configured
        MissingIncludeSource: If the routes file or an include is missing
    """
    if not config.routes.file:
        raise ValueError("No routes file configured (routes.file)")

    locator = FileRuleLocator(config.routes.base_dir)
    return RuleTable(config.routes.file, locator=locator)
