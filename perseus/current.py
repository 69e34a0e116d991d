"""The current build context.

A build pushes its site here for the duration of the run so that code with no
explicit view context (a component rendered standalone, a helper built
outside a page) can still reach site settings. The value is cleared when the
build finishes, including when it fails, so sequential builds never see each
other's site.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .site import Site

_current_site: ContextVar[Site | None] = ContextVar("perseus_current_site", default=None)


def current_site() -> Site | None:
    """Return the site of the build in progress, if any."""
    return _current_site.get()


@contextmanager
def build_context(site: Site) -> Iterator[Site]:
    """Make ``site`` the current site until the block exits."""
    token = _current_site.set(site)
    try:
        yield site
    finally:
        _current_site.reset(token)
