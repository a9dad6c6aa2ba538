"""
Generation stage: navigation stub, then the page, post and index generators.

In parallel mode the page and post generators run side by side on two
threads. The index generator reads what the post generator stored, so it
starts only after both have been joined, and not at all if post generation
failed. Outcomes are always reported in the order page, post, index.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from jinja2 import TemplateError

from .builders import build_index, build_pages, build_posts
from .errors import ErrorKind, Failure, Success, aggregate
from .renderer import render
from .state import ProjectState

STAGE_NAME = 'launch_tasks'

logger = logging.getLogger('Verso.Generation')


class BuildMode(Enum):
    PARALLEL = 'parallel'
    SEQUENTIAL = 'sequential'


def compile_nav(state: ProjectState):
    """Render the ``nav`` template once and store it as ``navstub``."""
    logger.info("Compiling main navigation HTML stub...")
    template = state.require('templates')['nav']
    try:
        html = render(template, {})
    except TemplateError as e:
        return Failure(ErrorKind.TEMPLATE_ERROR, f"nav: {e}", path=template.filename,
                       line=getattr(e, 'lineno', None))
    state.put('navstub', html)
    return Success(html)


def _run_sequential(src, dest, state, page_builder, post_builder, index_builder):
    logger.info("Starting sequential build...")
    results = [
        page_builder(src, dest, BuildMode.SEQUENTIAL, state),
        post_builder(src, dest, BuildMode.SEQUENTIAL, state),
    ]
    if results[1].ok:
        results.append(index_builder(src, dest, BuildMode.SEQUENTIAL, state))
    return results


def _run_parallel(src, dest, state, page_builder, post_builder, index_builder):
    logger.info("Starting parallel build...")
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix='verso') as executor:
        page_future = executor.submit(page_builder, src, dest, BuildMode.PARALLEL, state)
        post_future = executor.submit(post_builder, src, dest, BuildMode.PARALLEL, state)
        results = [page_future.result(), post_future.result()]
    # index reads the posts written above
    if results[1].ok:
        results.append(index_builder(src, dest, BuildMode.PARALLEL, state))
    return results


def launch_tasks(mode, src, dest, state: ProjectState,
                 page_builder=build_pages, post_builder=build_posts, index_builder=build_index):
    """Run the three generators under ``mode`` and aggregate their outcomes."""
    mode = BuildMode(mode)
    runner = _run_parallel if mode is BuildMode.PARALLEL else _run_sequential
    results = runner(src, dest, state, page_builder, post_builder, index_builder)
    if len(results) < 3:
        logger.warning("Skipping index generation because post generation failed.")
    return aggregate(results, STAGE_NAME)


def generate(mode, src, dest, state: ProjectState, **builders):
    """Compile the navigation stub, then launch the generators."""
    nav = compile_nav(state)
    if not nav.ok:
        logger.error(f"Cannot compile navigation: {nav}")
        return aggregate([nav], STAGE_NAME)
    return launch_tasks(mode, src, dest, state, **builders)
