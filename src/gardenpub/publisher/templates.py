"""Jinja2 templates for the site.

Templates are looked up in the site's templates directory first. Anything
not found there falls back to the built-in defaults below, so a garden can
be published without writing any templates.

Template names and their context:
    garden.html   doc, tree, site
    post.html     post, site
    posts.html    posts, site
    rss.xml       posts, site
    sitemap.xml   urls, site
"""

from __future__ import annotations

import datetime as dt
from email.utils import format_datetime
from pathlib import Path
from typing import Any

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, select_autoescape

BASE_TEMPLATE = """<!DOCTYPE html>
<html lang="{{ lang | default(site.default_lang) }}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{% block title %}{% endblock %}</title>
    {% if canonical %}<link rel="canonical" href="{{ canonical }}">{% endif %}
    {% if description %}<meta name="description" content="{{ description }}">{% endif %}
    <link rel="alternate" type="application/rss+xml" href="{{ site.site_url }}/posts/rss.xml">
    <link rel="stylesheet" href="/css/screen.css">
    {% if has_code_blocks %}
    <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/highlight.js@11.9.0/styles/a11y-light.min.css">
    <script src="https://cdn.jsdelivr.net/npm/highlight.js@11.9.0/highlight.min.js"></script>
    <script>hljs.highlightAll();</script>
    {% endif %}
</head>
<body>
    <main class="main">
{% block content %}{% endblock %}
    </main>
</body>
</html>
"""

TREE_TEMPLATE = """{% macro render_tree(node) %}
<ul class="tree">
    {% for folder in node.subfolders %}
    <li class="tree-folder"><details><summary>{{ folder.name }}</summary>{{ render_tree(folder) }}</details></li>
    {% endfor %}
    {% for file in node.files %}
    <li class="tree-file"><a href="{{ file.url }}">{{ file.title }}</a></li>
    {% endfor %}
</ul>
{% endmacro %}
"""

GARDEN_TEMPLATE = """{% extends "base.html" %}
{% set lang = doc.lang %}
{% set canonical = site.site_url ~ doc.canonical_url %}
{% set description = doc.summary %}
{% set has_code_blocks = doc.has_code_blocks %}
{% block title %}{{ doc.title }}{% endblock %}
{% block content %}
{% from "tree.html" import render_tree %}
<nav class="garden-tree">{{ render_tree(tree) }}</nav>
<article class="garden-entry">
    <h1{% if doc.title_id %} id="{{ doc.title_id }}"{% endif %}>{{ doc.title }}</h1>
    {% if doc.toc | length > 1 %}
    <nav class="toc">
        <ul>
            {% for item in doc.toc %}
            <li class="toc-depth-{{ item.depth }}"><a href="#{{ item.id }}">{{ item.title }}</a></li>
            {% endfor %}
        </ul>
    </nav>
    {% endif %}
    {{ doc.html | safe }}
    {% if doc.backlinks %}
    <footer class="backlinks">
        <h2>Referenced by</h2>
        <ul>
            {% for source in doc.backlinks %}
            <li><a href="{{ source.canonical_url }}">{{ source.title }}</a></li>
            {% endfor %}
        </ul>
    </footer>
    {% endif %}
</article>
{% endblock %}
"""

POST_TEMPLATE = """{% extends "base.html" %}
{% set lang = post.lang %}
{% set canonical = site.site_url ~ post.canonical_url %}
{% set description = post.summary %}
{% set has_code_blocks = post.has_code_blocks %}
{% block title %}{{ post.title }}{% endblock %}
{% block content %}
<article class="post">
    <h1{% if post.title_id %} id="{{ post.title_id }}"{% endif %}>{{ post.title }}</h1>
    <time datetime="{{ post.metadata.date }}">{{ post.metadata.date_formatted or post.metadata.date }}</time>
    {{ post.html | safe }}
    {% if post.backlinks %}
    <footer class="backlinks">
        <h2>Referenced by</h2>
        <ul>
            {% for source in post.backlinks %}
            <li><a href="{{ source.canonical_url }}">{{ source.title }}</a></li>
            {% endfor %}
        </ul>
    </footer>
    {% endif %}
</article>
{% endblock %}
"""

POSTS_TEMPLATE = """{% extends "base.html" %}
{% set canonical = site.site_url ~ "/posts/" %}
{% block title %}Posts{% endblock %}
{% block content %}
<ul class="posts">
    {% for post in posts %}
    <li>
        <a href="{{ post.url }}">{{ post.title }}</a>
        <time datetime="{{ post.metadata.date }}">{{ post.metadata.date_formatted or post.metadata.date }}</time>
        {% if post.summary %}<p>{{ post.summary }}</p>{% endif %}
    </li>
    {% endfor %}
</ul>
{% endblock %}
"""

RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
    <title>{{ site.site_url }}</title>
    <link>{{ site.site_url }}/posts/</link>
    <description>Posts</description>
    {% for post in posts %}
    <item>
        <title>{{ post.title }}</title>
        <link>{{ site.site_url ~ post.canonical_url }}</link>
        <guid>{{ site.site_url ~ post.canonical_url }}</guid>
        <pubDate>{{ post.metadata.date | rfc822 }}</pubDate>
        {% if post.summary %}<description>{{ post.summary }}</description>{% endif %}
    </item>
    {% endfor %}
</channel>
</rss>
"""

SITEMAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
    {% for url in urls %}
    <url>
        <loc>{{ url.loc }}</loc>
        <lastmod>{{ url.lastmod }}</lastmod>
        <changefreq>{{ url.changefreq }}</changefreq>
    </url>
    {% endfor %}
</urlset>
"""

DEFAULT_TEMPLATES = {
    "base.html": BASE_TEMPLATE,
    "tree.html": TREE_TEMPLATE,
    "garden.html": GARDEN_TEMPLATE,
    "post.html": POST_TEMPLATE,
    "posts.html": POSTS_TEMPLATE,
    "rss.xml": RSS_TEMPLATE,
    "sitemap.xml": SITEMAP_TEMPLATE,
}


def rfc822(value: dt.date | dt.datetime | None) -> str:
    """Format a date for RSS ``pubDate`` (dates are taken as midnight UTC)."""
    if value is None:
        return ""
    if not isinstance(value, dt.datetime):
        value = dt.datetime(value.year, value.month, value.day, tzinfo=dt.UTC)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=dt.UTC)
    return format_datetime(value, usegmt=True)


def create_environment(templates_dir: Path | None = None) -> Environment:
    """Create the Jinja2 environment used for every page of a build.

    Args:
        templates_dir: Site templates. Missing templates fall back to defaults.
    """
    loaders = []
    if templates_dir is not None and templates_dir.is_dir():
        loaders.append(FileSystemLoader(str(templates_dir)))
    loaders.append(DictLoader(DEFAULT_TEMPLATES))

    env = Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html", "xml"], default_for_string=True),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["rfc822"] = rfc822
    return env


def render_template(env: Environment, name: str, **context: Any) -> str:
    """Render a named template."""
    return env.get_template(name).render(**context)


def render_string(env: Environment, source: str, **context: Any) -> str:
    """Render a content page; it may extend or include site templates."""
    return env.from_string(source).render(**context)
