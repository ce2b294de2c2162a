"""Route declarations on controller methods.

Controllers can declare their routes next to the code that serves them:

    class Users:
        @route("users", methods=["GET"], name="users")
        @route("people", methods=["GET"])
        def list(self):
            ...

:func:`collect_rules` turns the declarations into ordinary :class:`Rule`
objects with a ``(controller class, method name)`` target. Nothing is
registered as a side effect of decorating; the table only sees the rules
it is given.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

from routetable.core.rule import Rule

ROUTES_ATTRIBUTE = "__routetable_routes__"

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class RouteDeclaration:
    """One route declared on a controller method."""

    path: str
    methods: Tuple[str, ...] = ()
    name: Optional[str] = None


def route(
    path: str = "", methods: Optional[Iterable[str]] = None, name: Optional[str] = None
) -> Callable[[F], F]:
    """Declare a route served by the decorated controller method.

    The decorator can be stacked; declarations keep their top-to-bottom
    order.

    Args:
        path: Path template
        methods: Allowed HTTP methods (default: any)
        name: Route name

    Returns:
        Decorator that records the declaration on the function
    """
    declaration = RouteDeclaration(
        path=path,
        methods=tuple(m.upper() for m in methods or ()),
        name=name,
    )

    def decorator(func: F) -> F:
        target = getattr(func, "__func__", func)
        # Decorators apply bottom-up
        declared = getattr(target, ROUTES_ATTRIBUTE, ())
        setattr(target, ROUTES_ATTRIBUTE, (declaration, *declared))
        return func

    return decorator


def declared_routes(member: Any) -> Tuple[RouteDeclaration, ...]:
    """Return the declarations on a class member, unwrapping static and class methods."""
    func = getattr(member, "__func__", member)
    return getattr(func, ROUTES_ATTRIBUTE, ())


def collect_rules(*controllers: type) -> List[Rule]:
    """Build rules for every route declared on the given controller classes.

    Rules come out per controller in argument order, then per method in
    class body order, which becomes their match priority. Members inherited
    from base classes are not inspected.

    Args:
        controllers: Controller classes

    Returns:
        List of rules targeting ``(controller, method name)``
    """
    rules: List[Rule] = []
    for controller in controllers:
        for attribute, member in vars(controller).items():
            for declaration in declared_routes(member):
                rule = Rule.path(declaration.path).controller(controller, attribute)
                if declaration.methods:
                    rule.method(*declaration.methods)
                if declaration.name:
                    rule.name(declaration.name)
                rules.append(rule)
    return rules
