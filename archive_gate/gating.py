"""Route gating for the closed archive.

Maps the current path plus the closed state to a navigation decision.
Performing the redirect is left to the caller (the HTTP middleware).
"""

from typing import Iterable, Optional

from archive_gate.models.entities import NavigationDecision, PageType, RouteKind


def path_matches(path: str, prefix: str) -> bool:
    """True when `path` is `prefix` or a sub-path of it."""
    prefix = prefix.rstrip("/") or "/"
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


def decide_navigation(route_kind: RouteKind, is_closed: bool) -> NavigationDecision:
    """Decision table for the closed-archive redirect."""
    if route_kind is RouteKind.CLOSED_ROUTE and not is_closed:
        return NavigationDecision.REDIRECT_TO_OPEN
    if route_kind is RouteKind.GATED_ROUTE and is_closed:
        return NavigationDecision.REDIRECT_TO_CLOSED
    return NavigationDecision.NO_ACTION


class GatingPolicy:
    """Redirects gated routes to the closed route while the archive is closed,
    and the closed route back to the open route once it reopens."""

    def __init__(
        self,
        open_route: str = "/archive",
        closed_route: str = "/archive/closed",
        gated_prefixes: Optional[Iterable[str]] = None,
    ):
        self.open_route = open_route
        self.closed_route = closed_route
        self.gated_prefixes = tuple(gated_prefixes) if gated_prefixes is not None else (open_route,)

    def classify(self, path: str) -> RouteKind:
        path = path.rstrip("/") or "/"
        if path == self.closed_route.rstrip("/"):
            return RouteKind.CLOSED_ROUTE
        if any(path_matches(path, prefix) for prefix in self.gated_prefixes):
            return RouteKind.GATED_ROUTE
        return RouteKind.UNTRACKED

    def decide(self, path: str, is_closed: bool) -> NavigationDecision:
        return decide_navigation(self.classify(path), is_closed)

    def target_for(self, decision: NavigationDecision) -> Optional[str]:
        """Route to navigate to, or None for no action."""
        if decision is NavigationDecision.REDIRECT_TO_OPEN:
            return self.open_route
        if decision is NavigationDecision.REDIRECT_TO_CLOSED:
            return self.closed_route
        return None


def resolve_page_type(pathname: Optional[str]) -> PageType:
    """Map a pathname to its page type."""
    if not pathname:
        return PageType.HOME
    if path_matches(pathname, "/archive/entry"):
        return PageType.ARCHIVE_ENTRY
    if path_matches(pathname, "/archive"):
        return PageType.ARCHIVE
    if path_matches(pathname, "/lab"):
        return PageType.LAB
    if path_matches(pathname, "/radio"):
        return PageType.RADIO
    return PageType.HOME
