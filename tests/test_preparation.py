"""Tests for the preparation stage."""

import pytest
import os
from pathlib import Path
from unittest.mock import patch

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from verso_pkg import preparation
from verso_pkg.errors import ErrorKind, Failure, StageFailure, Success
from verso_pkg.preparation import (
    ContentEntry, check_tz, load_info, load_templates, prepare, scan_pages
)
from verso_pkg.state import ProjectState


class TestCheckTz:
    """Test cases for the time zone check."""

    def test_unset_tz(self, monkeypatch):
        monkeypatch.delenv('TZ', raising=False)
        assert check_tz(ProjectState()).ok

    def test_posix_tz_string(self, monkeypatch):
        """Test that POSIX TZ strings are left to the C library."""
        monkeypatch.setenv('TZ', 'EST5EDT')
        assert check_tz(ProjectState()).ok

    def test_unknown_zone(self, monkeypatch):
        monkeypatch.setenv('TZ', 'Not/AZone')
        result = check_tz(ProjectState())

        assert not result.ok
        assert result.kind == ErrorKind.SYSTEM_ERROR
        assert 'Not/AZone' in result.message

    def test_missing_zone_file(self, monkeypatch, temp_dir):
        monkeypatch.setenv('TZ', ':' + os.path.join(temp_dir, 'nowhere'))
        result = check_tz(ProjectState())

        assert result.kind == ErrorKind.SYSTEM_ERROR


class TestLoadInfo:
    """Test cases for project info loading."""

    def test_load(self, site_src):
        state = ProjectState()
        result = load_info(site_src, state)

        assert result.ok
        proj = state.get('proj')
        assert proj['site_name'] == 'Test Site'
        assert proj['base_url'] == '/blog/'
        assert proj['preview_length'] == 200

    def test_missing_file(self, temp_dir):
        state = ProjectState()
        result = load_info(temp_dir, state)

        assert result.kind == ErrorKind.FILE_ERROR
        assert result.reason == 'ENOENT'
        assert 'proj' not in state

    def test_malformed_yaml(self, temp_dir):
        Path(temp_dir, 'verso.yml').write_text("site_name: [unclosed\nauthor: me\n")
        result = load_info(temp_dir, ProjectState())

        assert result.kind == ErrorKind.CONFIG_ERROR
        assert result.path.endswith('verso.yml')
        assert result.line is not None

    def test_missing_required_keys(self, temp_dir):
        Path(temp_dir, 'verso.yml').write_text("site_name: Only a name\n")
        result = load_info(temp_dir, ProjectState())

        assert result.kind == ErrorKind.CONFIG_ERROR
        assert 'base_url' in result.message

    def test_not_utf8(self, temp_dir):
        Path(temp_dir, 'verso.yml').write_bytes(b'site_name: \xff\xfe\n')
        state = ProjectState()
        result = load_info(temp_dir, state)

        assert result.kind == ErrorKind.CONFIG_ERROR
        assert 'UTF-8' in result.message
        assert result.path.endswith('verso.yml')
        assert 'proj' not in state


class TestLoadTemplates:
    """Test cases for template loading."""

    def test_load(self, site_src):
        state = ProjectState()
        result = load_templates(site_src, state)

        assert result.ok
        assert {'base', 'nav', 'list', 'page', 'post'} <= set(state.get('templates'))

    def test_nested_templates_are_keyed_by_path(self, site_src):
        Path(site_src, 'templates', 'partials').mkdir()
        Path(site_src, 'templates', 'partials', 'footer.html').write_text('<footer></footer>')
        state = ProjectState()

        assert load_templates(site_src, state).ok
        assert 'partials/footer' in state.get('templates')

    def test_syntax_error(self, site_src):
        Path(site_src, 'templates', 'nav.html').write_text("<nav>\n{% for x in %}</nav>")
        state = ProjectState()
        result = load_templates(site_src, state)

        assert result.kind == ErrorKind.TEMPLATE_ERROR
        assert result.message.startswith('nav:')
        assert result.line == 2
        assert 'templates' not in state

    def test_missing_required_template(self, site_src):
        os.remove(os.path.join(site_src, 'templates', 'list.html'))
        result = load_templates(site_src, ProjectState())

        assert result.kind == ErrorKind.TEMPLATE_ERROR
        assert "'list'" in result.message

    def test_missing_directory(self, temp_dir):
        result = load_templates(temp_dir, ProjectState())

        assert result.kind == ErrorKind.FILE_ERROR
        assert result.reason == 'ENOENT'

    def test_not_utf8(self, site_src):
        Path(site_src, 'templates', 'extra.html').write_bytes(b'<p>\xff</p>')
        state = ProjectState()
        result = load_templates(site_src, state)

        assert result.kind == ErrorKind.TEMPLATE_ERROR
        assert result.message.startswith('extra: Not valid UTF-8')
        assert result.path.endswith('extra.html')
        assert 'templates' not in state


class TestScanPages:
    """Test cases for content discovery."""

    def test_scan(self, site_src):
        dest = os.path.join(site_src, 'site') + '/'
        state = ProjectState()

        assert scan_pages(site_src, dest, state).ok
        pages = state.get('page_manifest')
        assert [os.path.relpath(p.dest, dest) for p in pages] == [
            'about.html', 'index.html', os.path.join('docs', 'guide.html')
        ]
        assert [p.kind for p in pages] == ['md', 'md', 'html']

        posts = state.get('post_manifest')
        assert posts == [
            ContentEntry(os.path.join(site_src, 'posts', 'first-post.md'),
                         os.path.join(dest, 'posts', 'first-post.html'), 'md'),
            ContentEntry(os.path.join(site_src, 'posts', 'second-post.md'),
                         os.path.join(dest, 'posts', 'second-post.html'), 'md'),
        ]

    def test_ignores_hidden_and_other_files(self, site_src):
        Path(site_src, 'pages', '.draft.md').write_text('# Draft')
        Path(site_src, 'pages', 'notes.txt').write_text('notes')
        state = ProjectState()

        scan_pages(site_src, '/out/', state)
        names = [os.path.basename(p.src) for p in state.get('page_manifest')]
        assert '.draft.md' not in names
        assert 'notes.txt' not in names

    def test_missing_pages_directory(self, temp_dir):
        result = scan_pages(temp_dir, '/out/', ProjectState())

        assert result.kind == ErrorKind.FILE_ERROR
        assert result.path == os.path.join(temp_dir, 'pages')

    def test_missing_posts_directory(self, temp_dir, caplog):
        os.makedirs(os.path.join(temp_dir, 'pages'))
        state = ProjectState()

        with caplog.at_level('WARNING', logger='Verso'):
            assert scan_pages(temp_dir, '/out/', state).ok
        assert state.get('post_manifest') == []
        assert 'Posts directory' in caplog.text

    @pytest.mark.parametrize('reserved', [('posts', 'index.md'), ('tags', 'python', 'index.md')])
    def test_pages_under_list_directories(self, site_src, reserved):
        page = Path(site_src, 'pages', *reserved)
        page.parent.mkdir(parents=True)
        page.write_text('# Clash')
        state = ProjectState()
        result = scan_pages(site_src, '/out/', state)

        assert result.kind == ErrorKind.CONTENT_ERROR
        assert result.path == str(page)
        assert 'page_manifest' not in state

    def test_top_level_posts_page_is_allowed(self, site_src):
        Path(site_src, 'pages', 'posts.md').write_text('# Posts')
        state = ProjectState()

        assert scan_pages(site_src, '/out/', state).ok
        assert '/out/posts.html' in [p.dest for p in state.get('page_manifest')]


class TestPrepare:
    """Test cases for the whole preparation stage."""

    def test_success(self, site_src, monkeypatch):
        monkeypatch.delenv('TZ', raising=False)
        state = ProjectState()
        result = prepare(site_src, site_src + 'site/', state)

        assert result.ok
        assert {'proj', 'templates', 'page_manifest', 'post_manifest'} <= set(state.keys())

    def test_runs_every_step_after_a_failure(self, site_src):
        """Test that a failing step does not stop the later steps."""
        tz_failure = Failure(ErrorKind.SYSTEM_ERROR, 'System time zone is not set')
        with patch.object(preparation, 'check_tz', return_value=tz_failure), \
                patch.object(preparation, 'load_info', return_value=Success()) as info, \
                patch.object(preparation, 'load_templates', return_value=Success()) as templates, \
                patch.object(preparation, 'scan_pages', return_value=Success()) as scan:
            result = prepare(site_src, '/out/', ProjectState())

        info.assert_called_once()
        templates.assert_called_once()
        scan.assert_called_once()
        assert isinstance(result, StageFailure)
        assert result.stage == 'build_preparation'
        assert result.kind == ErrorKind.SYSTEM_ERROR

    def test_reports_first_failure_in_step_order(self, site_src, monkeypatch, caplog):
        """Test that every failure is logged but the first one is reported."""
        monkeypatch.delenv('TZ', raising=False)
        Path(site_src, 'templates', 'nav.html').write_text("{% if %}")
        os.remove(os.path.join(site_src, 'verso.yml'))

        with caplog.at_level('ERROR', logger='Verso'):
            result = prepare(site_src, '/out/', ProjectState())

        assert result.kind == ErrorKind.FILE_ERROR
        assert result.path == site_src
        assert caplog.text.count('Preparation failed') == 2

    def test_undecodable_files_do_not_stop_the_stage(self, site_src, monkeypatch):
        monkeypatch.delenv('TZ', raising=False)
        Path(site_src, 'verso.yml').write_bytes(b'site_name: \xff\xfe\n')
        Path(site_src, 'templates', 'extra.html').write_bytes(b'<p>\xff</p>')
        state = ProjectState()

        result = prepare(site_src, '/out/', state)

        assert result.stage == 'build_preparation'
        assert result.kind == ErrorKind.CONFIG_ERROR
        assert 'page_manifest' in state
