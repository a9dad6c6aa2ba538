"""
Build outcomes for Verso.

Every preparation and generation step returns either a ``Success`` or a
``Failure`` instead of raising. Stage-level aggregation wraps the first
failure of a stage in a ``StageFailure`` carrying the stage name.
"""

import errno
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Union


class ErrorKind(Enum):
    FILE_ERROR = 'file_error'
    CONFIG_ERROR = 'config_error'
    TEMPLATE_ERROR = 'template_error'
    CONTENT_ERROR = 'content_error'
    SYSTEM_ERROR = 'system_error'


@dataclass(frozen=True)
class Success:
    value: Any = None
    ok = True


@dataclass(frozen=True)
class Failure:
    """A single failed step.

    ``path`` names the file or directory involved, ``reason`` the OS-level
    reason code (e.g. ``ENOENT``), ``line`` the offending line in a source
    file and ``index`` the step index where one applies.
    """

    kind: ErrorKind
    message: str
    path: Optional[str] = None
    reason: Optional[str] = None
    line: Optional[int] = None
    index: Optional[int] = None
    ok = False

    def __str__(self):
        text = f"[{self.kind.value}] {self.message}"
        if self.path:
            text += f" ({self.path}"
            if self.line is not None:
                text += f":{self.line}"
            text += ")"
        return text


@dataclass(frozen=True)
class StageFailure:
    """The first failure of a stage, tagged with the stage name."""

    stage: str
    cause: Union[Failure, 'StageFailure']
    ok = False

    @property
    def kind(self) -> ErrorKind:
        return self.cause.kind

    @property
    def message(self) -> str:
        return self.cause.message

    @property
    def path(self) -> Optional[str]:
        return self.cause.path

    @property
    def reason(self) -> Optional[str]:
        return self.cause.reason

    @property
    def line(self) -> Optional[int]:
        return self.cause.line

    @property
    def index(self) -> Optional[int]:
        return self.cause.index

    @property
    def root(self) -> Failure:
        cause = self.cause
        while isinstance(cause, StageFailure):
            cause = cause.cause
        return cause

    def __str__(self):
        return f"Error in {self.stage}: {self.cause}"


Outcome = Union[Success, Failure, StageFailure]


def first_failure(results: Iterable[Outcome]) -> Optional[Union[Failure, StageFailure]]:
    """Return the first failed outcome in input order, or None."""
    for result in results:
        if not result.ok:
            return result
    return None


def aggregate(results: Iterable[Outcome], stage_name: str) -> Outcome:
    """Combine step outcomes into one stage outcome.

    Returns ``Success()`` when every outcome succeeded; otherwise the first
    failure in input order wrapped with ``stage_name``. Later failures are not
    inspected.
    """
    failure = first_failure(results)
    if failure is None:
        return Success()
    return StageFailure(stage_name, failure)


def file_failure(exc: OSError, path: str, message: Optional[str] = None, index: Optional[int] = None) -> Failure:
    """Convert an ``OSError`` into a ``FILE_ERROR`` failure."""
    reason = errno.errorcode.get(exc.errno) if exc.errno is not None else None
    return Failure(
        ErrorKind.FILE_ERROR,
        message or (exc.strerror or str(exc)),
        path=path,
        reason=reason,
        index=index,
    )
