from datetime import datetime

import pytest

from perseus.collections import (
    CollectionRegistry,
    PermalinkConflictError,
    ResourceCollection,
    ResourceIdentityError,
)
from perseus.config import Locale
from perseus.content import Document
from perseus.resources import Resource

EN = Locale("en", default=True)
FR = Locale("fr")


def make_resource(path, locale=EN, url=None, **front_matter):
    return Resource(Document(path, front_matter), locale, relative_url=url or f"/{path}/")


def test_register_appends_and_replaces_in_place():
    collection = ResourceCollection("pages")
    a = make_resource("a.md")
    b = make_resource("b.md")
    a_fr = make_resource("a.md", FR)
    for resource in (a, b, a_fr):
        collection.register(resource)
    assert list(collection) == [a, b, a_fr]
    assert a.collection is collection

    replacement = make_resource("a.md", title="New A")
    collection.register(replacement)
    assert len(collection) == 3
    assert collection[0] is replacement
    assert collection.get("a.md", "en") is replacement
    assert collection.get("a.md", "fr") is a_fr
    assert collection.get("missing.md", "en") is None


def test_register_rejects_resources_without_path():
    collection = ResourceCollection("pages")
    with pytest.raises(ResourceIdentityError) as excinfo:
        collection.register(make_resource(""))
    assert excinfo.value.resource is not None
    assert len(collection) == 0


def test_queries():
    collection = ResourceCollection(
        "posts",
        resources=[
            make_resource("one.md", title="One"),
            make_resource("one.md", FR, title="Un"),
            make_resource("two.md", title="Two"),
        ],
    )
    assert collection.find(lambda r: r.title == "Two").relative_path.as_posix() == "two.md"
    assert collection.find(lambda r: r.title == "Nope") is None
    assert [r.title for r in collection.select(lambda r: r.locale is EN)] == ["One", "Two"]
    assert [r.title for r in collection.for_locale("fr")] == ["Un"]
    assert [r.locale.tag for r in collection.variants("one.md")] == ["en", "fr"]
    assert collection.resources == list(collection)

    collection.clear()
    assert len(collection) == 0
    assert collection.get("one.md", "en") is None


def test_registry_iterates_every_collection_in_order():
    registry = CollectionRegistry(["pages", "posts"])
    page = make_resource("about.md")
    post = make_resource("hello.md")
    registry["posts"].register(post)
    registry["pages"].register(page)
    assert list(registry) == ["pages", "posts"]
    assert list(registry.resources()) == [page, post]
    assert "drafts" not in registry

    registry.clear()
    assert list(registry.resources()) == []


def test_check_unique_urls_reports_conflicts():
    registry = CollectionRegistry(["pages", "posts"])
    registry["pages"].register(make_resource("a.md", url="/same/"))
    registry["posts"].register(make_resource("b.md", url="/same/"))
    with pytest.raises(PermalinkConflictError) as excinfo:
        registry.check_unique_urls()
    assert excinfo.value.relative_url == "/same/"
    assert len(excinfo.value.resources) == 2
    assert isinstance(excinfo.value, ResourceIdentityError)


def test_resource_properties_and_write_lock():
    resource = make_resource("_posts/2024-01-15-hello-world.md")
    assert resource.identity == ("_posts/2024-01-15-hello-world.md", "en")
    assert resource.title == "Hello World"
    assert resource.date == datetime(2024, 1, 15)
    assert resource.layout is None
    assert resource.written is False

    resource.output = "<p>done</p>"
    resource.mark_written()
    assert resource.written is True
    with pytest.raises(AttributeError):
        resource.output = "changed"
    assert resource.output == "<p>done</p>"
