"""Test configuration and fixtures for Verso tests."""

import os
import sys
import pytest
import tempfile
import shutil
from pathlib import Path
import yaml

from jinja2 import Environment

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

TEMPLATES = {
    'base.html': """<html><head><title>{{ page_title }} - {{ site_name() }}</title></head>
<body>{{ navigation }}<main>{{ contents }}</main></body></html>""",
    'nav.html': """<nav><a href="{{ base() }}">{{ site_name() }}</a><a href="{{ page('about') }}">About</a></nav>""",
    'list.html': """<h1>{{ header }}</h1>
{% for post in posts %}<a class="post" href="{{ post.url }}">{{ post.title }}</a>
{% endfor %}""",
    'page.html': """<div class="page">{{ contents }}</div>""",
    'post.html': """<article><h1>{{ title }}</h1><time>{{ date }}</time>
{% for tag in tags %}<a class="tag" href="{{ tag.url }}">{{ tag.name }}</a>{% endfor %}
{{ contents }}</article>""",
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def project_info():
    return {
        'site_name': 'Test Site',
        'site_description': 'A site for tests',
        'author': 'John Doe',
        'author_email': 'john@example.com',
        'base_url': '/blog',
    }


@pytest.fixture
def site_src(temp_dir, project_info):
    """Create a complete project source directory and return it with a trailing slash."""
    src = Path(temp_dir) / 'site_src'
    (src / 'templates').mkdir(parents=True)
    (src / 'pages' / 'docs').mkdir(parents=True)
    (src / 'posts').mkdir()
    (src / 'assets' / 'css').mkdir(parents=True)
    (src / 'assets' / 'js').mkdir()
    (src / 'media').mkdir()

    (src / 'verso.yml').write_text(yaml.dump(project_info))

    for name, content in TEMPLATES.items():
        (src / 'templates' / name).write_text(content)

    (src / 'pages' / 'index.md').write_text("# Home\n\nWelcome to the **test** site.\n")
    (src / 'pages' / 'about.md').write_text("---\ntitle: About Us\n---\n\nAll about us.\n")
    (src / 'pages' / 'docs' / 'guide.html').write_text("<p>The guide.</p>\n")

    (src / 'posts' / 'first-post.md').write_text("""---
title: First Post
date: 2023-01-01
tags: [python, web]
---

The first post.
""")
    (src / 'posts' / 'second-post.md').write_text("""---
title: Second Post
date: "2023-02-01 10:30"
tags: python
---

The second post.
""")

    (src / 'assets' / 'css' / 'style.css').write_text("body {\n    color: red;\n}\n")
    (src / 'assets' / 'js' / 'app.js').write_text("function hello() {\n    return 1;\n}\n")
    (src / 'media' / 'logo.txt').write_text("logo")

    return str(src) + '/'


@pytest.fixture
def nav_state():
    """A build state holding only a trivial nav template."""
    from verso_pkg.state import ProjectState

    state = ProjectState()
    state.put('templates', {'nav': Environment().from_string('<nav></nav>')})
    return state
