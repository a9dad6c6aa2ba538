#!/usr/bin/env python3
"""
Command-line interface for Verso - static site builder.
"""

import os
import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import build, setup_logging
from .errors import StageFailure
from .generation import BuildMode
from .settings import VersoSettings

STARTER_TEMPLATES = {
    'base.html': """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ page_title }} - {{ site_name() }}</title>
  <link rel="stylesheet" href="{{ asset('css/style.css') }}">
</head>
<body>
  {{ navigation }}
  <main>
    {{ contents }}
  </main>
  <footer>&copy; {{ author() }}</footer>
</body>
</html>
""",
    'nav.html': """<nav>
  <a href="{{ base() }}">{{ site_name() }}</a>
  <a href="{{ base('posts/') }}">Posts</a>
</nav>
""",
    'list.html': """<h1>{{ header }}</h1>
<ul>
{% for post in posts %}
  <li>
    <a href="{{ post.url }}">{{ post.title }}</a> <small>{{ post.date_str }}</small>
    <p>{{ post.preview }}</p>
  </li>
{% endfor %}
</ul>
""",
    'page.html': """{{ contents }}
""",
    'post.html': """<article>
  <h1>{{ title }}</h1>
  <p><small>{{ date }}</small>
  {% for tag in tags %}<a href="{{ tag.url }}">#{{ tag.name }}</a> {% endfor %}</p>
  {{ contents }}
</article>
""",
}

SAMPLE_PAGE = """# Welcome

This site was built with **Verso**. Edit `pages/index.md` to change this page.
"""

SAMPLE_POST = """---
title: Hello, World!
date: 2026-01-01 09:00
tags: [welcome]
---

This is your first post. Add more Markdown files to `posts/` to write more.
"""

SAMPLE_CSS = """body { font-family: sans-serif; max-width: 48rem; margin: 0 auto; }
nav a { margin-right: 1rem; }
"""


def _write_new_file(path: str, content: str, label: str) -> None:
    if os.path.exists(path):
        print(f"{label} already exists: {path}")
        return
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    print(f"Created {label.lower()}: {path}")


def create_starter_structure(target_dir: str) -> None:
    """Create a starter project with templates, a page, a post, and assets."""
    directories = ['templates', 'pages', 'posts', 'assets/css', 'media']

    for directory in directories:
        dir_path = os.path.join(target_dir, directory)
        if os.path.exists(dir_path):
            print(f"Directory already exists: {directory}")
        else:
            os.makedirs(dir_path, exist_ok=True)
            print(f"Created directory: {directory}")

    for name, content in STARTER_TEMPLATES.items():
        _write_new_file(os.path.join(target_dir, 'templates', name), content, 'Template')
    _write_new_file(os.path.join(target_dir, 'pages', 'index.md'), SAMPLE_PAGE, 'Page')
    _write_new_file(os.path.join(target_dir, 'posts', 'hello-world.md'), SAMPLE_POST, 'Post')
    _write_new_file(os.path.join(target_dir, 'assets', 'css', 'style.css'), SAMPLE_CSS, 'Asset')


def init_project(target_dir: str, file_format: str) -> int:
    os.makedirs(target_dir, exist_ok=True)
    settings_loader = VersoSettings(target_dir)
    existing = settings_loader._find_config_file()
    if existing:
        print(f"Project info already exists: {existing}")
    else:
        config_path = settings_loader.create_sample_config(file_format)
        print(f"Created sample project info: {config_path}")

    print("\nCreating starter project structure...")
    create_starter_structure(target_dir)

    print("\n✅ Starter structure created successfully!")
    print(f"Edit the project info and templates, then run 'verso build {target_dir}' to build your site.")
    return 0


def build_project(src: str, dest: Optional[str], mode: str) -> int:
    result = build(src, dest, BuildMode(mode))
    if not result.ok:
        message = str(result) if isinstance(result, StageFailure) else f"Error: {result}"
        print(message, file=sys.stderr)
        return 1
    print(f"Your website is now ready at {result.value}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='verso', description='Verso - Static Site Builder')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    build_parser = subparsers.add_parser('build', help='Build the site in a project directory')
    build_parser.add_argument('src', help='Project directory containing pages, posts and templates')
    build_parser.add_argument('-o', '--output', type=str,
                              help="Output directory (defaults to '<src>/site/')")
    build_parser.add_argument('-m', '--mode', type=str, choices=[m.value for m in BuildMode],
                              default=BuildMode.PARALLEL.value,
                              help='Run the page and post generators in parallel or one after another')
    build_parser.add_argument('-v', '--verbose', action='store_true',
                              help='Show debug messages')
    build_parser.add_argument('--log-dir', type=str,
                              help='Also write a full log file into this directory')

    init_parser = subparsers.add_parser('init', help='Create a starter project')
    init_parser.add_argument('dir', nargs='?', default='.', help='Directory to create the project in')
    init_parser.add_argument('--format', type=str, choices=['yml', 'yaml', 'json'], default='yml',
                             help='Format of the project info file')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = create_parser().parse_args(argv)

    if args.command == 'init':
        sys.exit(init_project(args.dir, args.format))

    setup_logging(log_dir=args.log_dir, verbose=args.verbose)
    sys.exit(build_project(args.src, args.output, args.mode))


if __name__ == '__main__':
    main()
