"""Protocol definitions for Perseus.

These interfaces let renderers, components and views depend on capabilities
rather than concrete classes, so engines and helper sets can be swapped in
tests or extended without modifying the pipeline.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .site import Site


@runtime_checkable
class TemplateEngine(Protocol):
    """A template-rendering capability registered under file extensions."""

    @abstractmethod
    def render(self, template: str, context: Mapping[str, Any]) -> str:
        """Render template source with the given context.

        Args:
            template: Template source text.
            context: Variables available to the template.

        Returns:
            Rendered string.
        """
        ...


@runtime_checkable
class Renderable(Protocol):
    """Anything that renders itself inside a view context (a component)."""

    @abstractmethod
    def render_in(
        self, view_context: ViewContext, content_block: Callable[[], str] | None = None
    ) -> str:
        ...


@runtime_checkable
class ViewContext(Protocol):
    """The enclosing rendering scope a component renders within."""

    @property
    @abstractmethod
    def site(self) -> Site | None:
        ...

    @abstractmethod
    def capture(self, block: Callable[..., Any], *args: Any) -> str:
        """Run block with a fresh output buffer and return what it produced."""
        ...

    @abstractmethod
    def partial(
        self,
        name: str,
        options: Mapping[str, Any] | None = None,
        content_block: Callable[[], str] | None = None,
    ) -> str:
        """Render a named partial template."""
        ...

    @abstractmethod
    def write(self, text: Any) -> str:
        """Append text to the current output buffer."""
        ...


@runtime_checkable
class HelperProvider(Protocol):
    """Read-only helper set exposed to templates and components."""

    @abstractmethod
    def relative_url(self, target: Any) -> str:
        ...

    @abstractmethod
    def absolute_url(self, target: Any) -> str:
        ...

    @abstractmethod
    def markdownify(self, text: str) -> str:
        ...

    @abstractmethod
    def t(self, key: str, default: str | None = None) -> str:
        ...
