from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .resources import Resource

if TYPE_CHECKING:
    from .site import Site


class ResourceIdentityError(Exception):
    """Error raised when a resource's identity cannot place it in the output.

    Attributes:
        resource: The offending resource.
    """

    def __init__(self, resource: Resource | None, message: str):
        self.resource = resource
        super().__init__(message)


class PermalinkConflictError(ResourceIdentityError):
    """Error raised when two resources resolve to the same relative_url.

    Attributes:
        relative_url: The contested URL.
        resources: Every resource claiming it.
    """

    def __init__(self, relative_url: str, resources: list[Resource]):
        self.relative_url = relative_url
        self.resources = resources
        sources = ", ".join(f"{r.relative_path} ({r.locale.tag})" for r in resources)
        super().__init__(resources[0], f"{relative_url} is produced by more than one resource: {sources}")


class ResourceCollection(Sequence[Resource]):
    """Ordered set of resources keyed by (relative path, locale)."""

    def __init__(self, name: str, site: Site | None = None, resources: Iterable[Resource] = ()):
        self.name = name
        self.site = site
        self._resources: list[Resource] = []
        self._index: dict[tuple[str, str], int] = {}
        for resource in resources:
            self.register(resource)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __getitem__(self, item):
        return self._resources[item]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ResourceCollection({self.name!r}, {len(self._resources)} resources)"

    @property
    def resources(self) -> list[Resource]:
        return list(self._resources)

    def register(self, resource: Resource) -> None:
        """Insert a resource, replacing any entry with the same identity.

        A replacement keeps the slot of the entry it replaces; new identities
        are appended.

        Raises:
            ResourceIdentityError: If the resource has no relative path.
        """
        path, tag = resource.identity
        if not path or path == "." or not tag:
            raise ResourceIdentityError(
                resource, f"Cannot register a resource without a relative path in '{self.name}'"
            )
        resource.collection = self
        key = (path, tag)
        slot = self._index.get(key)
        if slot is None:
            self._index[key] = len(self._resources)
            self._resources.append(resource)
        else:
            self._resources[slot] = resource

    def get(self, relative_path: str, locale: str) -> Resource | None:
        slot = self._index.get((relative_path, locale))
        return None if slot is None else self._resources[slot]

    def find(self, predicate: Callable[[Resource], Any]) -> Resource | None:
        return next((r for r in self._resources if predicate(r)), None)

    def select(self, predicate: Callable[[Resource], Any]) -> list[Resource]:
        return [r for r in self._resources if predicate(r)]

    def for_locale(self, tag: str) -> list[Resource]:
        return self.select(lambda r: r.locale.tag == tag)

    def variants(self, relative_path: str) -> list[Resource]:
        """Every locale variant produced from one source file."""
        return self.select(lambda r: r.relative_path.as_posix() == relative_path)

    def clear(self) -> None:
        self._resources.clear()
        self._index.clear()


class CollectionRegistry(Mapping[str, ResourceCollection]):
    """Mapping of collection name to ResourceCollection."""

    def __init__(self, names: Iterable[str], site: Site | None = None):
        self._mapping = {name: ResourceCollection(name, site) for name in names}

    def __getitem__(self, key: str) -> ResourceCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CollectionRegistry({list(self._mapping)})"

    def resources(self) -> Iterator[Resource]:
        for collection in self._mapping.values():
            yield from collection

    def clear(self) -> None:
        for collection in self._mapping.values():
            collection.clear()

    def check_unique_urls(self) -> None:
        """Ensure no two resources share a relative_url.

        Raises:
            PermalinkConflictError: On the first contested URL.
        """
        claimed: dict[str, list[Resource]] = {}
        for resource in self.resources():
            claimed.setdefault(resource.relative_url, []).append(resource)
        for url, owners in claimed.items():
            if len(owners) > 1:
                raise PermalinkConflictError(url, owners)
