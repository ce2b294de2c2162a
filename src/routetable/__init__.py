"""Declarative URL routing rules with first-match-wins matching.

Usage:
    from routetable import RuleTable, get, path

    table = RuleTable([
        get("blog/{slug}").view("blog/post").name("blog_post"),
        path("admin").include([
            get("users", ("app.admin.Users", "list")),
        ]),
    ])

    matched = table.match("GET", "example.com", False, "/blog/hello-world")
"""

from routetable.core.declare import collect_rules, route
from routetable.core.errors import (
    InvalidPattern,
    InvalidRule,
    MissingIncludeSource,
    RoutingError,
    RuleDefinitionError,
)
from routetable.core.loader import FileRuleLocator, load_table
from routetable.core.matched import MatchedRoute
from routetable.core.patterns import CompiledPattern, compile_pattern, join_paths
from routetable.core.rule import (
    CallableTarget,
    ControllerTarget,
    FlatRule,
    Rule,
    RuleProperty,
    TargetType,
    ViewTarget,
)
from routetable.core.table import RuleTable, create_table

__version__ = "0.1.0"

# Factory shortcuts
path = Rule.path
get = Rule.get
post = Rule.post
put = Rule.put
patch = Rule.patch
delete = Rule.delete
options = Rule.options
default = Rule.default
property = Rule.property

__all__ = [
    "__version__",
    # Patterns
    "CompiledPattern",
    "compile_pattern",
    "join_paths",
    # Rules
    "Rule",
    "FlatRule",
    "RuleProperty",
    "TargetType",
    "ControllerTarget",
    "CallableTarget",
    "ViewTarget",
    "path",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "options",
    "default",
    "property",
    # Declarations
    "route",
    "collect_rules",
    # Table
    "RuleTable",
    "create_table",
    "MatchedRoute",
    "FileRuleLocator",
    "load_table",
    # Errors
    "RoutingError",
    "InvalidPattern",
    "InvalidRule",
    "MissingIncludeSource",
    "RuleDefinitionError",
]
