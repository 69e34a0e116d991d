import pytest
from markupsafe import Markup

from perseus.components import Component
from perseus.current import build_context
from perseus.renderers import (
    EngineRegistry,
    JinjaTemplateEngine,
    TemplateNotFoundError,
    UnsupportedTemplateError,
)
from perseus.site import Site
from perseus.views import ResourceView


def make_site(tmp_path, **settings):
    (tmp_path / "src" / "_components").mkdir(parents=True, exist_ok=True)
    (tmp_path / "src" / "_partials").mkdir(parents=True, exist_ok=True)
    config = {"root_dir": str(tmp_path), "disable_disk_cache": True}
    config.update(settings)
    return Site(config)


def test_call_overrides_template():
    class Greeting(Component):
        def __init__(self, name):
            self.name = name

        def call(self):
            return f"<p>Hello {self.name}</p>"

    assert Greeting("Ada").render_in(ResourceView()) == "<p>Hello Ada</p>"


def test_template_file_with_content_block(tmp_path):
    (tmp_path / "card.jinja").write_text(
        "<div class='card'>{{ title }}: {{ content }}</div>", encoding="utf-8"
    )

    class Card(Component, template=tmp_path / "card"):
        def __init__(self, title):
            self.title = title

    output = ResourceView().render(Card("Hi & bye"), content_block=lambda: Markup("<em>inner</em>"))
    assert output == "<div class='card'>Hi &amp; bye: <em>inner</em></div>"
    assert isinstance(output, Markup)
    assert Card.component_template_path() == tmp_path / "card.jinja"


def test_should_render_false_skips_everything():
    class Hidden(Component):
        def should_render(self):
            return False

        def before_render(self):
            raise AssertionError("before_render must not run")

        def call(self):
            return "visible"

    assert Hidden().render_in(ResourceView()) == ""


def test_before_render_runs_before_template():
    class Prepared(Component):
        def before_render(self):
            self.label = "ready"

        def call(self):
            return self.label

    assert Prepared().render_in(ResourceView()) == "ready"


def test_content_is_evaluated_once():
    calls = []

    def block():
        calls.append(1)
        return "body"

    class Twice(Component):
        def call(self):
            return f"{self.content()}|{self.content()}"

    assert ResourceView().render(Twice(), content_block=block) == "body|body"
    assert len(calls) == 1

    class Empty(Component):
        def call(self):
            return repr(self.content())

    assert ResourceView().render(Empty()) == "None"


def test_failed_nested_render_leaves_no_partial_output(caplog):
    class Exploding(Component):
        def call(self):
            self.write("partial output")
            raise RuntimeError("mid-render failure")

    class Wrapper(Component):
        def call(self):
            self.write("wrapper-before")
            try:
                self.render(Exploding())
            except RuntimeError:
                pass
            return f"[{self.view_context.output_buffer}]"

    view = ResourceView()
    view.write("parent:")
    with pytest.raises(RuntimeError):
        view.render(Exploding())
    assert str(view.output_buffer) == "parent:"
    assert "Exploding encountered an error" in caplog.text

    assert view.render(Wrapper()) == "[wrapper-before]"
    assert str(view.output_buffer) == "parent:"


def test_nested_components_are_not_double_escaped(tmp_path):
    (tmp_path / "badge.jinja").write_text("<span>{{ label }}</span>", encoding="utf-8")
    (tmp_path / "panel.jinja").write_text(
        "<section>{{ render(badge) }}{{ content }}</section>", encoding="utf-8"
    )

    class Badge(Component, template=tmp_path / "badge"):
        def __init__(self, label):
            self.label = label

    class Panel(Component, template=tmp_path / "panel"):
        def __init__(self, badge):
            self.badge = badge

    output = ResourceView().render(Panel(Badge("<new>")), content_block=lambda: "body")
    assert output == "<section><span>&lt;new&gt;</span>body</section>"


def test_jinja_call_block_passes_content(tmp_path):
    (tmp_path / "box.jinja").write_text("<div>{{ title }}|{{ content }}</div>", encoding="utf-8")

    class Box(Component, template=tmp_path / "box"):
        def __init__(self, title):
            self.title = title

    view = ResourceView()
    html = JinjaTemplateEngine().render(
        "{% call render(box) %}<b>inner</b>{% endcall %}", view.context(box=Box("T"))
    )
    assert html == "<div>T|<b>inner</b></div>"


def test_engine_is_built_once_per_component_type(tmp_path):
    created = []

    class CountingEngine:
        def __init__(self):
            created.append(self)

        def render(self, template, context):
            return template.upper()

    registry = EngineRegistry(defaults=False)
    registry.register("txt", CountingEngine)
    (tmp_path / "shout.txt").write_text("hey", encoding="utf-8")

    class Shout(Component, template=tmp_path / "shout"):
        engine_registry = registry
        supported_template_extensions = ("txt",)

    view = ResourceView()
    assert view.render(Shout()) == "HEY"
    assert view.render(Shout()) == "HEY"
    assert len(created) == 1
    assert Shout.engine_for("txt") is Shout.engine_for(".TXT")


def test_engines_are_not_shared_between_component_types(tmp_path):
    class First(Component):
        pass

    class Second(Component):
        pass

    assert First.engine_for("jinja") is First.engine_for("jinja")
    assert First.engine_for("jinja") is not Second.engine_for("jinja")
    with pytest.raises(UnsupportedTemplateError) as excinfo:
        First.engine_for("erb")
    assert excinfo.value.extension == "erb"
    with pytest.raises(UnsupportedTemplateError):
        First.engine_for("txt")


def test_template_found_by_class_name_in_load_paths(tmp_path):
    site = make_site(tmp_path)
    (tmp_path / "src" / "_components" / "fancy_card.html.jinja").write_text(
        "<div>{{ locale }}</div>", encoding="utf-8"
    )

    class FancyCard(Component):
        pass

    with build_context(site):
        assert ResourceView(site).render(FancyCard()) == "<div>en</div>"


def test_relative_template_joins_load_paths(tmp_path):
    site = make_site(tmp_path, components_dir=["_components", "./shared"])
    (tmp_path / "shared" / "cards").mkdir(parents=True)
    (tmp_path / "shared" / "cards" / "fancy.j2").write_text("shared card", encoding="utf-8")

    class Fancy(Component, template="cards/fancy"):
        pass

    with build_context(site):
        assert ResourceView(site).render(Fancy()) == "shared card"
        assert Fancy.component_template_path() == tmp_path / "shared" / "cards" / "fancy.j2"


def test_missing_template_lists_candidates(tmp_path, caplog):
    site = make_site(tmp_path)

    class MissingWidget(Component):
        pass

    with build_context(site):
        with pytest.raises(TemplateNotFoundError) as excinfo:
            ResourceView(site).render(MissingWidget())
    assert "MissingWidget" in excinfo.value.identity
    assert tmp_path / "src" / "_components" / "missing_widget.jinja" in excinfo.value.candidates
    assert "missing_widget" in caplog.text


def test_partial_and_helpers_from_component(tmp_path):
    site = make_site(tmp_path, base_path="/basefolder")
    (tmp_path / "src" / "_partials" / "note.jinja").write_text("note: {{ text }}", encoding="utf-8")

    class Linked(Component):
        def call(self):
            return f"{self.relative_url('/about/')} {self.partial('note', {'text': 'hi'})}"

    with build_context(site):
        assert ResourceView(site).render(Linked()) == "/basefolder/about/ note: hi"


def test_component_outside_a_render():
    class Loose(Component):
        pass

    loose = Loose()
    assert loose.view_context is None
    assert loose.site is None
    assert loose.relative_url("/about/") == "/about/"
    with pytest.raises(RuntimeError):
        loose.capture(lambda: "x")
    with pytest.raises(AttributeError):
        loose.no_such_helper


def test_sequential_sites_resolve_their_own_component_templates(tmp_path):
    first = make_site(tmp_path / "first")
    second = make_site(tmp_path / "second")
    (tmp_path / "first" / "src" / "_components" / "badge.jinja").write_text("A", encoding="utf-8")
    (tmp_path / "second" / "src" / "_components" / "badge.jinja").write_text("B", encoding="utf-8")

    class Badge(Component):
        pass

    rendered = []
    for site in (first, second):
        with build_context(site):
            rendered.append(ResourceView(site).render(Badge()))
    assert rendered == ["A", "B"]


def test_processing_a_site_rereads_component_templates(tmp_path):
    site = make_site(tmp_path)
    (tmp_path / "src" / "index.jinja").write_text("{{ render(badge) }}", encoding="utf-8")
    template = tmp_path / "src" / "_components" / "badge.jinja"

    class Badge(Component):
        pass

    site.template_globals["badge"] = Badge()
    outputs = []
    for text in ("old", "new"):
        template.write_text(text, encoding="utf-8")
        site.process()
        outputs.append(site.find_resource("index.jinja").output)
    assert outputs == ["old", "new"]
