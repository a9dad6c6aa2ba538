"""
Verso - A static site builder.

Verso renders pages and blog posts from Markdown and Jinja2 templates. A
build validates the output location, runs the preparation steps, generates
pages, posts and post lists either in parallel or sequentially, and finally
copies static assets.
"""

__version__ = "1.0.0"

from .core import Verso, build
from .errors import ErrorKind, Failure, StageFailure, Success, aggregate
from .generation import BuildMode
from .state import ProjectState

__all__ = [
    'Verso', 'build', 'BuildMode', 'ProjectState',
    'ErrorKind', 'Failure', 'StageFailure', 'Success', 'aggregate',
]
