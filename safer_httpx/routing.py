"""Path pattern matcher — compiles route keys and finds the rule for a call.

Route keys look like ``"POST /notes"``, ``"put:/notes/:id"`` or
``"/users/:id?"``. The verb prefix is case-insensitive and separated by a
single space or colon; without one the route only matches GET.

Path templates understand a path-to-regexp style subset:

    :name           one segment
    :name?          optional segment (the leading "/" goes with it)
    :name*          zero or more segments
    :name+          one or more segments
    :name(\\d+)      custom segment pattern
    (\\d+)           unnamed group

Matching is deterministic: routes are tried in declaration order and the
first route whose method and pattern both match wins.
"""

import re
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import urlsplit

import structlog

from safer_httpx.errors import RouteSyntaxError
from safer_httpx.models import Rule, RouteEntry

logger = structlog.get_logger()

DEFAULT_METHOD = "get"

# Default pattern for a single path segment
DEFAULT_SEGMENT = r"[^/#?]+?"

# "scheme://" or protocol-relative "//" at the start of a path or key
URL_PREFIX = re.compile(r"^([a-z][a-z0-9+.-]*:)?//", re.IGNORECASE)
URL_ORIGIN = re.compile(r"^([a-z][a-z0-9+.-]*:)?//[^/]*", re.IGNORECASE)

VERB_PREFIX = re.compile(r"^(?P<verb>[a-z-]+)[ :](?P<path>.*)$", re.IGNORECASE | re.DOTALL)

PARAM_TOKEN = re.compile(
    r":(?P<name>\w+)(?:\((?P<pattern>(?:\\.|[^\\()])+)\))?(?P<modifier>[?*+])?"
)
GROUP_TOKEN = re.compile(r"\((?P<pattern>(?:\\.|[^\\()])+)\)(?P<modifier>[?*+])?")


def parse_route_key(key: str) -> tuple[str, str]:
    """Split a route key into (method, path template).

    >>> parse_route_key("POST /notes")
    ('post', '/notes')
    >>> parse_route_key("/users/:id?")
    ('get', '/users/:id?')
    """
    text = key.strip()

    # A full URL as key: the scheme is not a verb
    if URL_PREFIX.match(text):
        return DEFAULT_METHOD, URL_ORIGIN.sub("", text, count=1) or "/"

    match = VERB_PREFIX.match(text)
    if not match:
        return DEFAULT_METHOD, text

    verb = match.group("verb").lower()
    path = match.group("path").strip()
    if verb.startswith("http"):
        verb = DEFAULT_METHOD
    if URL_PREFIX.match(path):
        path = URL_ORIGIN.sub("", path, count=1)
    return verb, path or "/"


def compile_path(template: str, key: Optional[str] = None) -> tuple[re.Pattern, tuple[str, ...]]:
    """Compile a path template into an anchored, case-insensitive regex.

    Returns:
        (compiled pattern, parameter names in group order)

    Raises:
        RouteSyntaxError: On a parameter without a name or a stray modifier
    """
    key = key if key is not None else template
    parts: list[str] = []
    names: list[str] = []
    unnamed = 0
    i = 0

    while i < len(template):
        ch = template[i]

        if ch == "\\" and i + 1 < len(template):
            parts.append(re.escape(template[i + 1]))
            i += 2
            continue

        if ch == ":":
            token = PARAM_TOKEN.match(template, i)
            if not token:
                raise RouteSyntaxError(key, f"missing parameter name at position {i}")
            name = token.group("name")
        elif ch == "(":
            token = GROUP_TOKEN.match(template, i)
            if not token:
                raise RouteSyntaxError(key, f"unbalanced group at position {i}")
            name = str(unnamed)
            unnamed += 1
        elif ch in "?*+":
            raise RouteSyntaxError(key, f"unexpected '{ch}' at position {i}")
        else:
            parts.append(re.escape(ch))
            i += 1
            continue

        if name in names:
            raise RouteSyntaxError(key, f"duplicate parameter '{name}'")

        group = f"p{len(names)}"
        names.append(name)
        pattern = token.group("pattern") or DEFAULT_SEGMENT
        modifier = token.group("modifier")

        # A "/" right before an optional or repeated parameter belongs to it
        prefix = ""
        if modifier and parts and parts[-1] == "/":
            prefix = parts.pop()

        parts.append(_param_expression(group, pattern, prefix, modifier))
        i = token.end()

    source = "^" + "".join(parts) + "/?$"
    try:
        return re.compile(source, re.IGNORECASE), tuple(names)
    except re.error as e:
        raise RouteSyntaxError(key, f"bad parameter pattern: {e}") from e


def _param_expression(group: str, pattern: str, prefix: str, modifier: Optional[str]) -> str:
    if not modifier:
        return f"(?P<{group}>{pattern})"
    if modifier == "?":
        return f"(?:{prefix}(?P<{group}>{pattern}))?"

    repeated = f"(?:{pattern})(?:{prefix}(?:{pattern}))*"
    if modifier == "*":
        return f"(?:{prefix}(?P<{group}>{repeated}))?"
    return f"{prefix}(?P<{group}>{repeated})"


def extract_path(path_or_url: str) -> str:
    """Reduce a full URL (or a path with a query string) to its path."""
    path = urlsplit(path_or_url).path
    return path or "/"


def relative_path(url: str, base_url: Any) -> Optional[str]:
    """Return the path of ``url`` below the path of ``base_url``.

    None when base_url is unset, has no path of its own, or url lies outside it.
    """
    if not base_url:
        return None
    base = urlsplit(str(base_url))
    base_path = base.path.rstrip("/")
    if not base_path:
        return None

    target = urlsplit(url)
    if target.netloc and (target.scheme, target.netloc) != (base.scheme, base.netloc):
        return None
    if target.path == base_path or target.path.startswith(base_path + "/"):
        return target.path[len(base_path):] or "/"
    return None


class RouteTable:
    """Ordered, immutable list of compiled routes."""

    def __init__(self, entries: list[RouteEntry]):
        self._entries = tuple(entries)

    @property
    def entries(self) -> tuple[RouteEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, path: str, method: Optional[str] = DEFAULT_METHOD) -> Optional[RouteEntry]:
        """Return the first route matching method and path, or None."""
        method = (method or DEFAULT_METHOD).lower()
        path = extract_path(path)
        for entry in self._entries:
            if entry.method == method and entry.compiled.match(path):
                return entry
        return None

    def match(self, path: str, method: Optional[str] = DEFAULT_METHOD) -> Optional[Rule]:
        """Return the rule of the first matching route, or None on no match."""
        entry = self.find(path, method)
        return entry.rule if entry is not None else None

    def params(self, path: str, method: Optional[str] = DEFAULT_METHOD) -> Optional[dict[str, Optional[str]]]:
        """Return the path parameters captured by the first matching route."""
        entry = self.find(path, method)
        if entry is None:
            return None
        groups = entry.compiled.match(extract_path(path)).groupdict()
        return {name: groups[f"p{i}"] for i, name in enumerate(entry.param_names)}


def compile_routes(rule_map: Mapping[str, Any]) -> RouteTable:
    """Compile every route key eagerly, keeping declaration order.

    Raises:
        RouteSyntaxError: A key holds a malformed template
        RuleConfigurationError: A value is not rule-like
    """
    entries = []
    for key, value in rule_map.items():
        method, path_pattern = parse_route_key(key)
        compiled, param_names = compile_path(path_pattern, key)
        entries.append(RouteEntry(
            key=key,
            method=method,
            path_pattern=path_pattern,
            compiled=compiled,
            param_names=param_names,
            rule=Rule.coerce(value, key),
        ))

    logger.debug(
        "route_table_compiled",
        routes=[f"{e.method.upper()} {e.path_pattern}" for e in entries],
    )
    return RouteTable(entries)
