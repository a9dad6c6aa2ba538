"""
Template compilation and rendering for Verso.

Templates are plain Jinja2 files under ``<src>/templates``. Every template
gets a small set of helper globals (``base``, ``page``, ``post``, ``asset``
and the project info accessors) that read the project info from the build
state at render time.
"""

import os
import errno
import traceback
import mistune
from typing import Any, Callable, Dict
from jinja2 import Environment, FileSystemLoader, Template, TemplateError, TemplateSyntaxError

from .state import ProjectState

REQUIRED_TEMPLATES = ('base', 'nav', 'list', 'page', 'post')


class RenderError(TemplateError):
    """Raised when a template fails while it is being rendered."""

    def __init__(self, message, filename=None, lineno=None):
        super().__init__(message)
        self.filename = filename
        self.lineno = lineno


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>'.format(escaped_code)
    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


def template_helpers(state: ProjectState) -> Dict[str, Callable]:
    """Build the helper functions exposed to every template."""
    def proj(key):
        return state.require('proj')[key]

    def base(path=''):
        return proj('base_url') + path

    def page(name):
        return base(name + '.html')

    def post(name):
        return base('posts/' + name + '.html')

    def asset(path):
        return base('assets/' + path)

    def accessor(key):
        return lambda: proj(key)

    helpers = {'base': base, 'page': page, 'post': post, 'asset': asset}
    for key in ('site_name', 'site_description', 'author', 'author_email'):
        helpers[key] = accessor(key)
    return helpers


def create_environment(templates_dir: str, state: ProjectState) -> Environment:
    env = Environment(loader=FileSystemLoader(templates_dir))
    env.globals.update(template_helpers(state))
    return env


def compile_templates(templates_dir: str, state: ProjectState) -> Dict[str, Template]:
    """Compile every ``*.html`` template found under ``templates_dir``.

    Templates are keyed by their path relative to ``templates_dir`` without
    the extension, so ``templates/nav.html`` becomes ``nav``.

    Raises:
        jinja2.TemplateSyntaxError: A template failed to compile
        OSError: The directory could not be read
    """
    if not os.path.isdir(templates_dir):
        raise FileNotFoundError(errno.ENOENT, "Templates directory not found", templates_dir)

    env = create_environment(templates_dir, state)
    compiled = {}
    for root, dirs, files in os.walk(templates_dir):
        dirs.sort()
        for file in sorted(files):
            if not file.endswith('.html'):
                continue
            path = os.path.join(root, file)
            rel_path = os.path.relpath(path, templates_dir).replace(os.sep, '/')
            try:
                compiled[os.path.splitext(rel_path)[0]] = env.get_template(rel_path)
            except UnicodeDecodeError as e:
                raise TemplateSyntaxError(f"Not valid UTF-8: {e.reason}", None,
                                          name=rel_path, filename=path) from e
    return compiled


def _template_line(template: Template, exc: BaseException):
    """Find the template line that was executing when ``exc`` was raised."""
    line = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if template.filename and frame.filename == template.filename:
            line = frame.lineno
    return line


def render(template: Template, context: Dict[str, Any]) -> str:
    """Render a compiled template with ``context``.

    Raises:
        jinja2.TemplateError: The template failed. Any other exception raised
            while the template runs, such as a helper called with the wrong
            arguments, is raised as a ``RenderError``.
    """
    try:
        return template.render(**context)
    except TemplateError:
        raise
    except Exception as e:
        raise RenderError(f"{type(e).__name__}: {e}", filename=template.filename,
                          lineno=_template_line(template, e)) from e


def render_page(state: ProjectState, template_name: str, context: Dict[str, Any]) -> str:
    """Render ``template_name`` and wrap the result in the ``base`` template."""
    templates = state.require('templates')
    contents = render(templates[template_name], context)
    return render(templates['base'], {
        'page_title': context.get('title', ''),
        'contents': contents,
        'navigation': state.get('navstub', ''),
    })
