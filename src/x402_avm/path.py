"""Route table compilation and matching for payment-gated paths."""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

from pydantic import ValidationError

from x402_avm.types import RouteConfig, RoutesConfig, TokenAmount

_REGEX_SPECIALS = re.compile(r"[$()+.?^{|}\\]")
_PARAM = re.compile(r"\[([^\]]+)\]")
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class RouteConfigurationError(ValueError):
    """Raised when a route table entry cannot be compiled."""


@dataclass(frozen=True)
class RoutePattern:
    verb: str
    pattern: re.Pattern
    config: RouteConfig


def _normalize_route_config(
    pattern: str, value: object, default_network: str
) -> RouteConfig:
    if isinstance(value, RouteConfig):
        return value
    try:
        if isinstance(value, dict) and "price" in value:
            return RouteConfig.model_validate(value)
        if isinstance(value, dict):
            return RouteConfig(
                price=TokenAmount.model_validate(value), network=default_network
            )
        return RouteConfig(price=value, network=default_network)
    except ValidationError as e:
        raise RouteConfigurationError(f"Invalid route config for {pattern}: {e}")


def compile_path_pattern(path: str) -> re.Pattern:
    """Compile a path pattern into an anchored, case-insensitive regex.

    `*` matches any characters (non-greedy) and `[name]` matches a single
    path segment.
    """
    source = _REGEX_SPECIALS.sub(lambda m: "\\" + m.group(0), path)
    source = source.replace("*", ".*?")
    source = _PARAM.sub("[^/]+", source)
    source = source.replace("/", "\\/")
    return re.compile(f"^{source}$", re.IGNORECASE)


def compute_route_patterns(
    routes: RoutesConfig, default_network: str = "algorand"
) -> list[RoutePattern]:
    """Compile a route table into route patterns.

    Args:
        routes: Mapping of "<VERB> <path>" (verb optional) to a price or RouteConfig
        default_network: Network used for entries given as a bare price

    Returns:
        The compiled route patterns, in table order

    Raises:
        RouteConfigurationError: If a pattern or its configuration is invalid
    """
    patterns = []
    for pattern, value in routes.items():
        parts = pattern.split()
        if len(parts) == 1:
            verb, path = "*", parts[0]
        elif len(parts) == 2:
            verb, path = parts
        else:
            raise RouteConfigurationError(f"Invalid route pattern: {pattern}")

        patterns.append(
            RoutePattern(
                verb=verb.upper(),
                pattern=compile_path_pattern(path),
                config=_normalize_route_config(pattern, value, default_network),
            )
        )
    return patterns


def normalize_path(path: str) -> Optional[str]:
    """Normalize a request path for matching.

    Strips query and fragment, percent-decodes, converts backslashes,
    collapses repeated slashes and trims trailing slashes. Returns None when
    the path cannot be decoded.
    """
    path = re.split(r"[?#]", path, maxsplit=1)[0]
    if _MALFORMED_ESCAPE.search(path):
        return None
    try:
        path = unquote(path, errors="strict")
    except UnicodeDecodeError:
        return None

    path = path.replace("\\", "/")
    path = re.sub(r"/+", "/", path)
    return re.sub(r"(.+?)/+$", r"\1", path)


def find_matching_route(
    route_patterns: list[RoutePattern], path: str, method: str
) -> Optional[RoutePattern]:
    """Find the most specific route pattern for a path and method.

    When several patterns match, the one with the longest compiled source
    wins. Returns None when the request is not payment-gated.
    """
    normalized_path = normalize_path(path)
    if normalized_path is None:
        return None

    upper_method = method.upper()
    matching_routes = [
        route
        for route in route_patterns
        if (route.verb == "*" or route.verb == upper_method)
        and route.pattern.match(normalized_path)
    ]
    if not matching_routes:
        return None

    return max(matching_routes, key=lambda route: len(route.pattern.pattern))
