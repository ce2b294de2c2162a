"""Path template compiler.

Turns a path template into an anchored regular expression with named groups.

Supported placeholders:
- Named variables: users/{user_id} (one segment, never crosses ``/``)
- Named catch-alls: files/{*path} (one or more characters, may cross ``/``)
- Anonymous catch-alls: static/{*} (as above, nothing captured)

Placeholders may sit inside a segment (``report-{year}.{ext}``). Both
templates and request paths are trimmed of leading and trailing ``/``.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from routetable.core.errors import InvalidPattern

# Anything between a pair of braces; validated separately so that malformed
# identifiers produce a useful error instead of being matched literally.
_PLACEHOLDER = re.compile(r"\{([^{}]*)\}")

# Identifier: a letter or underscore followed by letters, digits or
# underscores. ``\w`` is Unicode-aware for str patterns.
_IDENTIFIER = re.compile(r"[^\W\d]\w*")

_SEGMENT_VARIABLE = r"(?P<{name}>[^/]+?)"
_CATCH_ALL_VARIABLE = r"(?P<{name}>.+?)"
_ANONYMOUS_CATCH_ALL = r"(?:.+?)"


def trim_path(path: Optional[str]) -> str:
    """Strip leading and trailing slashes from a path."""
    if not path:
        return ""
    return path.strip("/")


def join_paths(*parts: Optional[str]) -> str:
    """Join path fragments with a single ``/``.

    Empty fragments are skipped and redundant separators at the joints are
    dropped, so ``join_paths("admin/", "/users")`` is ``"admin/users"``.
    """
    return "/".join(trimmed for trimmed in (trim_path(p) for p in parts) if trimmed)


@dataclass(frozen=True)
class CompiledPattern:
    """A path template compiled into an anchored regex."""

    template: str
    regex: re.Pattern = field(repr=False, compare=False)
    variables: Tuple[str, ...] = ()

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Match a trimmed path against this pattern.

        Args:
            path: Decoded request path, already trimmed of ``/``

        Returns:
            Mapping of variable name to matched text, or None when the
            pattern does not match. Groups that did not take part in the
            match are left out.
        """
        match = self.regex.match(path)
        if match is None:
            return None

        return {name: value for name, value in match.groupdict().items() if value is not None}


def _anchor(body: str) -> str:
    return r"\A" + body + r"\Z"


def _escape_literal(template: str, literal: str) -> str:
    """Escape literal template text, rejecting stray braces."""
    if "{" in literal or "}" in literal:
        raise InvalidPattern(template, "unbalanced or nested braces")
    return re.escape(literal)


def compile_pattern(template: Optional[str]) -> CompiledPattern:
    """Compile a path template.

    Args:
        template: Path template, e.g. ``blog/{slug}`` or ``files/{*path}``

    Returns:
        CompiledPattern matching the whole trimmed path

    Raises:
        InvalidPattern: If a placeholder is malformed, a variable name is
            repeated or braces are unbalanced
    """
    template = trim_path(template)

    parts = []
    variables = []
    position = 0

    for placeholder in _PLACEHOLDER.finditer(template):
        parts.append(_escape_literal(template, template[position : placeholder.start()]))
        position = placeholder.end()

        content = placeholder.group(1)
        catch_all = content.startswith("*")
        name = content[1:] if catch_all else content

        if catch_all and not name:
            parts.append(_ANONYMOUS_CATCH_ALL)
            continue

        if not name:
            raise InvalidPattern(template, "empty placeholder '{}'")
        if not _IDENTIFIER.fullmatch(name) or not name.isidentifier():
            raise InvalidPattern(template, f"invalid variable name {name!r}")
        if name in variables:
            raise InvalidPattern(template, f"duplicate variable {name!r}")

        variables.append(name)
        fragment = _CATCH_ALL_VARIABLE if catch_all else _SEGMENT_VARIABLE
        parts.append(fragment.format(name=name))

    parts.append(_escape_literal(template, template[position:]))

    regex = re.compile(_anchor("".join(parts)), re.DOTALL)
    return CompiledPattern(template=template, regex=regex, variables=tuple(variables))
