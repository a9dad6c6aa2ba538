import os
import errno
import shutil
import logging
import time
from datetime import datetime
from typing import Optional, Tuple
import csscompressor
import rjsmin

from .errors import ErrorKind, Failure, Success, file_failure
from .generation import BuildMode, generate
from .preparation import prepare
from .state import ProjectState

logger = logging.getLogger('Verso')


def setup_logging(log_dir=None, verbose=False):
    """Set up logging configuration."""
    root_logger = logging.getLogger('Verso')
    root_logger.setLevel(logging.DEBUG)

    if not root_logger.handlers:
        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        console_formatter = logging.Formatter('%(message)s')
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        # File handler for all logs
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            log_filename = datetime.now().strftime('verso_%Y-%m-%d_%H-%M-%S.log')
            log_filepath = os.path.join(log_dir, log_filename)

            file_handler = logging.FileHandler(log_filepath)
            file_handler.setLevel(logging.DEBUG)
            file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)
    return root_logger


def normalize_dir(path: str) -> str:
    """Make sure a directory path ends with a separator."""
    return path if path.endswith(os.sep) else path + os.sep


def resolve_paths(src: str, dest: Optional[str] = None) -> Tuple[str, str]:
    """Normalize the source and destination, defaulting the latter to ``<src>/site/``."""
    src = normalize_dir(src)
    dest = normalize_dir(dest) if dest else src + 'site' + os.sep
    return src, dest


def check_access(dest: str):
    """Check that the parent of ``dest`` exists and is writable."""
    parent = os.path.dirname(dest.rstrip(os.sep)) or os.curdir
    try:
        os.stat(parent)
    except OSError as e:
        return file_failure(e, dest, index=0)
    if not os.access(parent, os.W_OK):
        return Failure(ErrorKind.FILE_ERROR, os.strerror(errno.EACCES), path=dest,
                       reason='EACCES', index=0)
    return Success()


def clean_dest(dest: str):
    """Create ``dest`` and remove its contents, except for dotfiles."""
    try:
        os.makedirs(dest, exist_ok=True)
        logger.info(f"Created directory `{dest}`.")

        # keep dotfiles such as .git
        for item in os.listdir(dest):
            if item.startswith('.'):
                continue
            item_path = os.path.join(dest, item)
            if os.path.isdir(item_path) and not os.path.islink(item_path):
                shutil.rmtree(item_path)
            else:
                os.remove(item_path)
    except OSError as e:
        return file_failure(e, e.filename or dest)
    return Success()


def minify_assets(assets_dir: str) -> None:
    """Write minified ``.min.css`` and ``.min.js`` copies next to copied assets."""
    for root, _, files in os.walk(assets_dir):
        for file in files:
            if file.endswith('.css') and not file.endswith('.min.css'):
                minifier, suffix = csscompressor.compress, '.min.css'
            elif file.endswith('.js') and not file.endswith('.min.js'):
                minifier, suffix = rjsmin.jsmin, '.min.js'
            else:
                continue
            path = os.path.join(root, file)
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    content = f.read()
                minified_path = os.path.splitext(path)[0] + suffix
                with open(minified_path, 'w', encoding='utf-8') as f:
                    f.write(minifier(content))
                logger.debug(f"Minified: {file}")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Cannot minify {path}: {e}. Skipping.")


def try_copy(src: str, dest: str) -> bool:
    try:
        shutil.copytree(src, dest, dirs_exist_ok=True)
    except OSError as e:
        reason = e.strerror or str(e)
        logger.warning(f"Cannot copy {src}: {reason}. Skipping.")
        return False
    return True


def copy_assets(src: str, dest: str, minify: bool = False) -> None:
    """Copy ``assets/`` and ``media/`` into the output. Failures are only logged."""
    logger.info("Copying assets and media...")
    assets_dest = os.path.join(dest, 'assets')
    if try_copy(os.path.join(src, 'assets'), assets_dest) and minify:
        minify_assets(assets_dest)
    try_copy(os.path.join(src, 'media'), os.path.join(dest, 'media'))


class Verso:
    """Builds a site from ``src`` into ``dest``.

    ``build`` returns ``Success(dest)`` or the first failure of the first
    stage that failed. Nothing survives between two calls to ``build``.
    """

    def __init__(self, src, dest=None, mode=BuildMode.PARALLEL):
        self.src, self.dest = resolve_paths(src, dest)
        self.mode = BuildMode(mode)

    def build(self):
        access = check_access(self.dest)
        if not access.ok:
            return access
        return self._build_stage1()

    def _build_stage1(self):
        logger.info("Rebuilding Website...")
        cleaned = clean_dest(self.dest)
        if not cleaned.ok:
            return cleaned

        state = ProjectState()
        prep_result = prepare(self.src, self.dest, state)
        if not prep_result.ok:
            return prep_result
        return self._build_stage2(state)

    def _build_stage2(self, state):
        start_time = time.perf_counter()
        result = generate(self.mode, self.src, self.dest, state)
        elapsed = (time.perf_counter() - start_time) * 1000
        if not result.ok:
            return result

        logger.info(f"Build process took {elapsed:.3f}ms.")
        copy_assets(self.src, self.dest, minify=bool(state.require('proj').get('minify')))
        return Success(self.dest)


def build(src, dest=None, mode=BuildMode.PARALLEL):
    """Build the site in ``src``. See ``Verso.build``."""
    return Verso(src, dest, mode).build()
