import pytest

from perseus.collections import PermalinkConflictError, ResourceIdentityError
from perseus.components import Component
from perseus.content import Document
from perseus.current import current_site
from perseus.renderers import TemplateRenderError
from perseus.site import Site

DEFAULT_LAYOUT = (
    '<html lang="{{ locale }}"><title>{{ page.title }}</title>'
    '{{ partial("nav", {"label": "Menu"}) }}{{ content }}</html>'
)

MULTI_PAGE = """---
title: Multi-locale page
locales: [en, fr]
locale_overrides:
  fr:
    title: Sur mesure
---

{% if locale == 'fr' %}French{% else %}English{% endif %}: {{ page.title }}

{% for r in collections['pages'].variants('_pages/multi-page.md') -%}
- {{ r.data.title }}: {{ r.relative_url }}
{% endfor %}
"""


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def create_site(tmp_path, template_globals=None, **settings):
    src = tmp_path / "src"
    write(src / "_layouts" / "default.jinja", DEFAULT_LAYOUT)
    write(src / "_layouts" / "post.jinja", "---\nlayout: default\n---\n<article>{{ content }}</article>")
    write(src / "_partials" / "nav.jinja", "<nav>{{ label }}</nav>")
    write(src / "_data" / "site.yaml", "title: Demo\n")
    write(src / "_data" / "locales.yaml", "en:\n  greeting: Hello\nfr:\n  greeting: Bonjour\n")
    write(src / "index.md", "---\ntitle: Home\n---\n# {{ data.title }}\n")
    write(
        src / "_pages" / "second-level-page.en.md",
        "---\ntitle: Second Level Page\n---\n\nLocale: {{ locale }}\n",
    )
    write(
        src / "_pages" / "second-level-page.fr.md",
        "---\ntitle: Page de second niveau\n---\n\nC'est **bien**.\n\nLocale: {{ locale }}\n",
    )
    write(src / "_pages" / "multi-page.md", MULTI_PAGE)
    write(src / "_pages" / "hello.md", "---\nlocale: multi\n---\n{{ t('greeting') }}\n")
    write(src / "_pages" / "draft.md", "---\npublished: false\n---\nSecret\n")
    write(
        src / "_posts" / "2024-01-15-hello-world.md",
        "---\ntitle: Hello World\nlayout: post\n---\nFirst post.\n",
    )
    write(src / "_components" / "notice.jinja", "<aside>{{ message }}</aside>")
    config = {
        "root_dir": str(tmp_path),
        "locales": ["en", "fr"],
        "default_locale": "en",
        "disable_disk_cache": True,
    }
    config.update(settings)
    return Site(config, template_globals=template_globals)


def output_file(tmp_path, *parts):
    return (tmp_path / "output").joinpath(*parts, "index.html")


def test_suffix_locales_render_to_separate_urls(tmp_path):
    site = create_site(tmp_path).process()
    en = site.find_resource("_pages/second-level-page.en.md", "en")
    fr = site.find_resource("_pages/second-level-page.fr.md", "fr")

    assert en.relative_url == "/second-level-page/"
    assert fr.relative_url == "/fr/second-level-page/"
    assert "<p>Locale: en</p>" in en.output
    assert "<p>C'est <strong>bien</strong>.</p>" in fr.output
    assert "<p>Locale: fr</p>" in fr.output
    assert '<html lang="fr"><title>Page de second niveau</title><nav>Menu</nav>' in fr.output
    assert output_file(tmp_path, "second-level-page").read_text(encoding="utf-8") == en.output
    assert output_file(tmp_path, "fr", "second-level-page").read_text(encoding="utf-8") == fr.output


def test_multi_locale_document_under_base_path(tmp_path):
    site = create_site(tmp_path, base_path="/basefolder").process()
    variants = site.collections["pages"].variants("_pages/multi-page.md")
    en, fr = variants

    assert [r.relative_url for r in variants] == ["/basefolder/multi-page/", "/basefolder/fr/multi-page/"]
    assert "<p>English: Multi-locale page</p>" in en.output
    assert "<p>French: Sur mesure</p>" in fr.output
    assert "<title>Sur mesure</title>" in fr.output
    assert "<li>Multi-locale page: /basefolder/multi-page/</li>" in fr.output
    assert "<li>Sur mesure: /basefolder/fr/multi-page/</li>" in fr.output
    assert en.permalink == "/multi-page/"
    assert output_file(tmp_path, "multi-page").exists()
    assert output_file(tmp_path, "fr", "multi-page").exists()


def test_each_locale_yields_a_distinct_resource(tmp_path):
    site = create_site(tmp_path).process()
    hello = site.collections["pages"].variants("_pages/hello.md")
    assert [r.locale.tag for r in hello] == ["en", "fr"]
    assert hello[0] is not hello[1]
    assert "<p>Hello</p>" in hello[0].output
    assert "<p>Bonjour</p>" in hello[1].output

    urls = [r.relative_url for r in site.resources()]
    assert len(urls) == len(set(urls))
    assert all(url.startswith("/") and "//" not in url for url in urls)


def test_translations_from_per_locale_data_files(tmp_path):
    site = create_site(tmp_path)
    (tmp_path / "src" / "_data" / "locales").mkdir()
    (tmp_path / "src" / "_data" / "locales" / "fr.yaml").write_text(
        "greeting: Salut\n", encoding="utf-8"
    )
    site.process()
    en, fr = site.collections["pages"].variants("_pages/hello.md")
    assert "<p>Hello</p>" in en.output
    assert "<p>Salut</p>" in fr.output


def test_index_data_layout_chain_and_unpublished(tmp_path):
    site = create_site(tmp_path).process()
    index = site.find_resource("index.md")
    assert index.relative_url == "/"
    assert '<h1 id="demo">Demo</h1>' in index.output
    assert (tmp_path / "output" / "index.html").exists()

    post = site.collections["posts"][0]
    assert post.relative_url == "/posts/2024/01/15/hello-world/"
    assert post.content == "<p>First post.</p>\n"
    assert '<title>Hello World</title><nav>Menu</nav><article><p>First post.</p>\n</article></html>' in post.output

    assert site.find_resource("_pages/draft.md") is None
    assert not output_file(tmp_path, "draft").exists()


def test_components_available_to_pages(tmp_path):
    class Notice(Component):
        def __init__(self, message):
            self.message = message

    site = create_site(tmp_path, template_globals={"Notice": Notice})
    (tmp_path / "src" / "_pages" / "notice.md").write_text(
        "{{ render(Notice('Heads up & more')) }}\n", encoding="utf-8"
    )
    site.process()
    page = site.find_resource("_pages/notice.md")
    assert "<aside>Heads up &amp; more</aside>" in page.output


def test_resources_are_frozen_after_write(tmp_path):
    site = create_site(tmp_path).process()
    resource = site.find_resource("index.md")
    assert resource.written
    with pytest.raises(AttributeError):
        resource.output = "changed"


def test_current_site_cleared_after_build(tmp_path):
    site = create_site(tmp_path)
    site.process()
    assert current_site() is None

    broken = create_site(tmp_path / "broken")
    (tmp_path / "broken" / "src" / "_pages" / "bad.md").write_text("{% if %}", encoding="utf-8")
    with pytest.raises(TemplateRenderError) as excinfo:
        broken.process()
    assert "_pages/bad.md" in excinfo.value.identity
    assert current_site() is None


def test_permalink_conflicts_are_rejected(tmp_path):
    site = Site({"root_dir": str(tmp_path)})
    documents = [
        Document("a.md", {"permalink": "/same/"}),
        Document("b.md", {"permalink": "/same/"}),
    ]
    with pytest.raises(PermalinkConflictError):
        site.read(documents)


def test_unknown_collection_is_rejected(tmp_path):
    site = Site({"root_dir": str(tmp_path)})
    with pytest.raises(ResourceIdentityError):
        site.add_document(Document("_drafts/x.md", collection="drafts"))


def test_layout_none_and_missing_default(tmp_path):
    site = Site({"root_dir": str(tmp_path)})
    site.process([Document("plain.md", {"title": "Plain"}, body="Just *text*")])
    resource = site.find_resource("plain.md")
    assert resource.output == "<p>Just <em>text</em></p>\n"

    with_layouts = create_site(tmp_path / "site")
    with_layouts.process([Document("raw.md", {"layout": "none"}, body="Raw")])
    assert with_layouts.find_resource("raw.md").output == "<p>Raw</p>\n"


def test_config_assignment_reconfigures_paths(tmp_path):
    site = Site({"root_dir": str(tmp_path)})
    site.config = {"root_dir": str(tmp_path), "components_dir": "./shared", "source": "site"}
    assert site.components_load_paths == (tmp_path / "shared",)
    assert site.layouts_dir == tmp_path / "site" / "_layouts"
    assert site.partials_dir == tmp_path / "site" / "_partials"
    assert site.output_path(
        site.add_document(Document("about.md"))[0]
    ) == tmp_path / "output" / "about" / "index.html"
