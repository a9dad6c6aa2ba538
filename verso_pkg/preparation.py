"""
Preparation steps run before any output is generated.

Each step returns a ``Success`` or ``Failure`` and writes what it produces
into the build's ``ProjectState``. ``prepare`` runs all of them, even after a
failure, so every problem in a project shows up in a single run.
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from jinja2 import TemplateSyntaxError

from .errors import ErrorKind, Failure, Success, aggregate, file_failure
from .renderer import REQUIRED_TEMPLATES, compile_templates
from .settings import ConfigError, VersoSettings
from .state import ProjectState

STAGE_NAME = 'build_preparation'

# output directories written by the post and index generators
RESERVED_DIRS = ('posts', 'tags')

logger = logging.getLogger('Verso.Preparation')


@dataclass(frozen=True)
class ContentEntry:
    """A content source file and the output file it renders to."""
    src: str
    dest: str
    kind: str


def check_tz(state: ProjectState):
    """Make sure the host time zone can be used for date formatting."""
    tz_name = os.environ.get('TZ')
    if tz_name and (tz_name.startswith(':') or '/' in tz_name):
        key = tz_name.lstrip(':')
        try:
            if os.path.isabs(key):
                if not os.path.isfile(key):
                    raise ZoneInfoNotFoundError(key)
            else:
                ZoneInfo(key)
        except (ZoneInfoNotFoundError, ValueError) as e:
            return Failure(ErrorKind.SYSTEM_ERROR, f"Time zone '{tz_name}' cannot be loaded: {e}")

    try:
        local_now = datetime.now().astimezone()
    except (OSError, ValueError, OverflowError) as e:
        return Failure(ErrorKind.SYSTEM_ERROR, f"System time zone is not set: {e}")
    if local_now.tzinfo is None or not local_now.tzname():
        return Failure(ErrorKind.SYSTEM_ERROR, "System time zone is not set")
    return Success()


def load_info(src: str, state: ProjectState):
    """Load project info from ``src`` and store it as ``proj``."""
    settings = VersoSettings(src)
    try:
        proj = settings.load_settings()
    except ConfigError as e:
        return Failure(ErrorKind.CONFIG_ERROR, str(e), path=e.path, line=e.line)
    except OSError as e:
        return file_failure(e, e.filename or src)
    state.put('proj', proj)
    return Success()


def load_templates(src: str, state: ProjectState):
    """Compile all templates under ``src/templates`` and store them as ``templates``."""
    templates_dir = os.path.join(src, 'templates')
    try:
        templates = compile_templates(templates_dir, state)
    except TemplateSyntaxError as e:
        name = e.name or os.path.basename(e.filename or templates_dir)
        return Failure(
            ErrorKind.TEMPLATE_ERROR,
            f"{os.path.splitext(name)[0]}: {e.message}",
            path=e.filename,
            line=e.lineno,
        )
    except OSError as e:
        return file_failure(e, e.filename or templates_dir)

    for name in REQUIRED_TEMPLATES:
        if name not in templates:
            return Failure(
                ErrorKind.TEMPLATE_ERROR,
                f"Required template '{name}' not found",
                path=os.path.join(templates_dir, name + '.html'),
            )
    state.put('templates', templates)
    return Success()


def _list_files(directory: str, extensions) -> List[str]:
    found = []
    for root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if not d.startswith('.'))
        for file in sorted(files):
            if file.endswith(extensions) and not file.startswith('.'):
                found.append(os.path.join(root, file))
    return found


def scan_pages(src: str, dest: str, state: ProjectState):
    """Discover page and post sources and store the manifests."""
    pages_dir = os.path.join(src, 'pages')
    posts_dir = os.path.join(src, 'posts')

    if not os.path.isdir(pages_dir):
        return Failure(ErrorKind.FILE_ERROR, "Pages directory not found", path=pages_dir, reason='ENOENT')

    page_manifest = []
    for path in _list_files(pages_dir, ('.md', '.html')):
        rel_path, ext = os.path.splitext(os.path.relpath(path, pages_dir))
        if rel_path.split(os.sep)[0] in RESERVED_DIRS and os.sep in rel_path:
            return Failure(
                ErrorKind.CONTENT_ERROR,
                f"Pages cannot live under '{rel_path.split(os.sep)[0]}/', which holds the post lists",
                path=path,
            )
        page_manifest.append(ContentEntry(path, os.path.join(dest, rel_path + '.html'), ext[1:]))

    post_manifest = []
    if os.path.isdir(posts_dir):
        for file in sorted(os.listdir(posts_dir)):
            path = os.path.join(posts_dir, file)
            if file.endswith('.md') and not file.startswith('.') and os.path.isfile(path):
                stem = os.path.splitext(file)[0]
                post_manifest.append(ContentEntry(path, os.path.join(dest, 'posts', stem + '.html'), 'md'))
    else:
        logger.warning(f"Posts directory {posts_dir} not found. No posts will be generated.")

    state.put('page_manifest', page_manifest)
    state.put('post_manifest', post_manifest)
    logger.debug(f"Found {len(page_manifest)} pages and {len(post_manifest)} posts")
    return Success()


def prepare(src: str, dest: str, state: ProjectState):
    """Run every preparation step and aggregate their outcomes."""
    results = [
        check_tz(state),
        load_info(src, state),
        load_templates(src, state),
        scan_pages(src, dest, state),
    ]
    for result in results:
        if not result.ok:
            logger.error(f"Preparation failed: {result}")
    return aggregate(results, STAGE_NAME)
