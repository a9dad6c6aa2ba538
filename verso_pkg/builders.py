"""
Page, post and index generators.

Each generator reads its manifest and the compiled templates from the build
state, writes HTML files under the destination directory and returns a
``Success`` or the first ``Failure`` it hit. Items are processed one at a
time in both build modes; a failing item is logged and the remaining items
are still generated.
"""

import os
import re
import logging
import yaml
from datetime import datetime, date
from jinja2 import TemplateError

from .errors import ErrorKind, Failure, Success, file_failure, first_failure
from .renderer import create_markdown_parser, render_page
from .state import ProjectState


class ContentError(ValueError):
    """Raised when a content source file is malformed."""

    def __init__(self, message, line=None):
        super().__init__(message)
        self.line = line


def template_failure(exc, path):
    """Turn a template error raised while building ``path`` into a Failure."""
    message = str(exc)
    filename = getattr(exc, 'filename', None)
    if filename:
        message = f"{os.path.basename(filename)}: {message}"
    return Failure(ErrorKind.TEMPLATE_ERROR, message, path=path, line=getattr(exc, 'lineno', None))


class Builder:
    """Shared plumbing for the generators."""

    name = 'Builder'

    def __init__(self, src, dest, mode, state: ProjectState):
        self.src = src
        self.dest = dest
        self.mode = mode
        self.state = state
        self.logger = logging.getLogger(f'Verso.{self.name}')
        self.markdown_parser = create_markdown_parser()

    def parse_markdown_with_metadata(self, filepath):
        """Split a source file into its YAML front matter and body."""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()

        if not content.startswith('---'):
            return {}, content

        parts = content.split('---', 2)
        if len(parts) < 3:
            raise ContentError("Front matter is not closed with '---'", line=1)
        try:
            metadata = yaml.safe_load(parts[1]) or {}
        except yaml.MarkedYAMLError as e:
            line = e.problem_mark.line + 1 if e.problem_mark else None
            raise ContentError(f"Invalid YAML front matter: {e.problem}", line=line) from e
        except yaml.YAMLError as e:
            raise ContentError(f"Invalid YAML front matter: {e}") from e
        if not isinstance(metadata, dict):
            raise ContentError("Front matter must be a mapping", line=2)
        return metadata, parts[2].strip()

    def parse_date(self, value):
        """Parse a front matter date."""
        if isinstance(value, datetime):
            # naive, so posts with and without offsets sort together
            return value.replace(tzinfo=None)
        elif isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            for fmt in ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%d', '%b %d, %Y']:
                try:
                    return datetime.strptime(value, fmt)
                except ValueError:
                    continue
        raise ContentError(f"Unrecognized date: {value!r}")

    def write_file(self, path, html):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as output_file:
            output_file.write(html)
        self.logger.debug(f"Generated HTML: {path}")

    def url_for(self, path):
        """Turn an output path into a URL below the site's base URL."""
        rel_path = os.path.relpath(path, self.dest).replace(os.sep, '/')
        return self.state.require('proj')['base_url'] + rel_path

    def build_item(self, entry):
        raise NotImplementedError

    def build_items(self, entries):
        """Build every entry, returning the outcome of each."""
        results = []
        for entry in entries:
            try:
                self.build_item(entry)
                results.append(Success(entry.dest))
            except ContentError as e:
                results.append(Failure(ErrorKind.CONTENT_ERROR, str(e), path=entry.src, line=e.line))
            except UnicodeDecodeError as e:
                results.append(Failure(ErrorKind.CONTENT_ERROR, f"Not valid UTF-8: {e.reason}", path=entry.src))
            except TemplateError as e:
                results.append(template_failure(e, entry.src))
            except OSError as e:
                results.append(file_failure(e, e.filename or entry.dest))
            if not results[-1].ok:
                self.logger.error(f"Cannot build {entry.src}: {results[-1]}")
        return results

    def run(self):
        raise NotImplementedError


class PageBuilder(Builder):
    """Renders every scanned page into the ``page`` template."""

    name = 'PageBuilder'

    def extract_title(self, body, entry):
        lines = body.lstrip().split('\n', 1)
        if lines[0].startswith('# '):
            return lines[0][2:].strip(), (lines[1] if len(lines) > 1 else '')
        if entry.kind == 'html':
            return os.path.splitext(os.path.basename(entry.src))[0], body
        raise ContentError("Page has no title", line=1)

    def build_item(self, entry):
        metadata, body = self.parse_markdown_with_metadata(entry.src)
        title = metadata.get('title')
        if not isinstance(title, str) or not title:
            title, body = self.extract_title(body, entry)
        contents = self.markdown_parser(body) if entry.kind == 'md' else body
        html = render_page(self.state, 'page', {'title': title, 'contents': contents})
        self.write_file(entry.dest, html)
        self.pages.append({'title': title, 'url': self.url_for(entry.dest), 'src': entry.src})

    def run(self):
        self.pages = []
        results = self.build_items(self.state.require('page_manifest'))
        self.state.put('pages', self.pages)
        self.logger.info(f"Generated {len(self.pages)} pages")
        return first_failure(results) or Success(len(self.pages))


class PostBuilder(Builder):
    """Renders blog posts and collects their metadata for the index."""

    name = 'PostBuilder'

    def generate_preview(self, html):
        """Generate a plain-text preview of a rendered post."""
        length = self.state.require('proj')['preview_length']
        plain_text = ' '.join(re.sub(r'<[^>]+>', '', html).split())
        if len(plain_text) > length:
            return plain_text[:length].rstrip() + '...'
        return plain_text

    def parse_tags(self, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [tag.strip() for tag in value.split(',')]
        if not isinstance(value, list):
            raise ContentError("tags must be a list or a comma-separated string")
        tags = []
        for tag in value:
            tag = str(tag).strip()
            if not tag or tag.startswith('.') or '/' in tag or '\\' in tag:
                raise ContentError(f"Invalid tag: {tag!r}")
            if tag not in tags:
                tags.append(tag)
        return tags

    def build_item(self, entry):
        proj = self.state.require('proj')
        metadata, body = self.parse_markdown_with_metadata(entry.src)
        title = metadata.get('title')
        if not isinstance(title, str) or not title:
            raise ContentError("Post has no title")
        if 'date' not in metadata:
            raise ContentError("Post has no date")
        post_date = self.parse_date(metadata['date'])
        base_url = proj['base_url']
        tags = [{'name': tag, 'url': f"{base_url}tags/{tag}/"}
                for tag in self.parse_tags(metadata.get('tags'))]
        contents = self.markdown_parser(body)
        info = {
            'title': title,
            'slug': os.path.splitext(os.path.basename(entry.dest))[0],
            'date': post_date,
            'date_str': post_date.strftime(proj['date_format']),
            'url': self.url_for(entry.dest),
            'tags': tags,
            'preview': self.generate_preview(contents),
        }
        html = render_page(self.state, 'post', {
            'title': title,
            'date': info['date_str'],
            'raw_date': post_date,
            'tags': tags,
            'contents': contents,
        })
        self.write_file(entry.dest, html)
        self.posts.append(info)

    def run(self):
        self.posts = []
        results = self.build_items(self.state.require('post_manifest'))
        self.posts.sort(key=lambda p: p['date'], reverse=True)

        tags = {}
        for post in self.posts:
            for tag in post['tags']:
                tags.setdefault(tag['name'], []).append(post)

        self.state.put('posts', self.posts)
        self.state.put('tags', tags)
        self.logger.info(f"Generated {len(self.posts)} posts")
        return first_failure(results) or Success(len(self.posts))


class IndexBuilder(Builder):
    """Writes the post list and one list per tag.

    Reads the ``posts`` and ``tags`` entries written by ``PostBuilder``, so
    it must only run after post generation has finished.
    """

    name = 'IndexBuilder'

    def build_list(self, path, header, posts):
        html = render_page(self.state, 'list', {'title': header, 'header': header, 'posts': posts})
        self.write_file(path, html)

    def run(self):
        proj = self.state.require('proj')
        posts = self.state.require('posts')
        tags = self.state.require('tags')

        lists = [(os.path.join(self.dest, 'posts', 'index.html'), proj['list_title_all'], posts)]
        for tag in sorted(tags):
            header = proj['list_title_tag'].replace('{tag}', tag)
            lists.append((os.path.join(self.dest, 'tags', tag, 'index.html'), header, tags[tag]))

        results = []
        for path, header, tagged_posts in lists:
            try:
                self.build_list(path, header, tagged_posts)
                results.append(Success(path))
            except TemplateError as e:
                results.append(template_failure(e, path))
            except OSError as e:
                results.append(file_failure(e, e.filename or path))
            if not results[-1].ok:
                self.logger.error(f"Cannot build {path}: {results[-1]}")

        self.logger.info(f"Generated post list and {len(tags)} tag pages")
        return first_failure(results) or Success(len(lists))


def build_pages(src, dest, mode, state):
    return PageBuilder(src, dest, mode, state).run()


def build_posts(src, dest, mode, state):
    return PostBuilder(src, dest, mode, state).run()


def build_index(src, dest, mode, state):
    return IndexBuilder(src, dest, mode, state).run()
