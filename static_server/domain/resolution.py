"""Mapping of request paths onto files under the content root.

Every request path resolves to exactly one outcome:

* ``Serve`` - a regular file inside the root,
* ``Redirect`` - the canonical form of a page URL,
* ``NotFound`` - nothing to serve (``rejected`` marks traversal attempts).

Paths are cleansed lexically before any filesystem access, and a file is only
served when its real location stays inside the real root.
"""

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

HTML_SUFFIX = ".html"
INDEX_DOCUMENT = "index.html"
INDEX_STEM = "index"


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured content root."""


@dataclass(frozen=True)
class Serve:
    path: Path


@dataclass(frozen=True)
class Redirect:
    location: str
    permanent: bool = True


@dataclass(frozen=True)
class NotFound:
    rejected: bool = False


ResolutionOutcome = Union[Serve, Redirect, NotFound]
FilesystemErrorCallback = Callable[[Path, OSError], None]


def clean_path(request_path: str) -> Optional[str]:
    """Return the lexically cleaned form of ``request_path``.

    ``None`` means the path can never be served: it is not absolute, holds a
    NUL byte or backslash, or walks upwards with ``..``.
    """
    if not request_path.startswith("/"):
        return None
    if "\x00" in request_path or "\\" in request_path:
        return None
    segments = request_path.split("/")
    if ".." in segments:
        return None
    cleaned = "/" + "/".join(s for s in segments if s not in ("", "."))
    if request_path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def canonical(path: str) -> str:
    """Return the redirect target for a page path.

    Strips ``.html``, then a trailing ``index`` segment, then guarantees a
    trailing slash. The result always ends with ``/``, so it is a fixed point.
    """
    if path.endswith(HTML_SUFFIX):
        path = path[: -len(HTML_SUFFIX)]
    if path == INDEX_STEM or path.endswith("/" + INDEX_STEM):
        path = path[: -len(INDEX_STEM)]
    if not path.endswith("/"):
        path += "/"
    return path


def sandboxed_target(root: Path, relative: str) -> Path:
    """Resolve ``relative`` under ``root``, refusing anything outside of it."""
    root_real = root.resolve()
    target = (root_real / relative.lstrip("/")).resolve()
    if not (target == root_real or root_real in target.parents):
        raise ForbiddenPath(relative)
    return target


def _regular_file(
    root: Path, relative: str, on_error: Optional[FilesystemErrorCallback]
) -> Optional[Path]:
    candidate = root / relative.lstrip("/")
    try:
        mode = os.stat(candidate).st_mode
        if not stat.S_ISREG(mode):
            return None
        return sandboxed_target(root, relative)
    except (FileNotFoundError, NotADirectoryError):
        return None
    except ForbiddenPath:
        return None
    except OSError as error:
        if on_error is not None:
            on_error(candidate, error)
        return None


def resolve(
    root: Union[str, Path],
    request_path: str,
    on_error: Optional[FilesystemErrorCallback] = None,
) -> ResolutionOutcome:
    """Decide what to do with ``request_path`` relative to ``root``.

    A path ending in ``/`` serves its sibling ``.html`` file, then its
    ``index.html``. The root ``/`` has no sibling, so a file literally named
    ``.html`` at the top of the content root is never served for it.
    """
    root = Path(root)
    path = clean_path(request_path)
    if path is None:
        return NotFound(rejected=True)

    if path.endswith("/"):
        if path != "/":
            sibling = _regular_file(root, path[:-1] + HTML_SUFFIX, on_error)
            if sibling is not None:
                return Serve(sibling)
        index = _regular_file(root, path + INDEX_DOCUMENT, on_error)
        if index is not None:
            return Serve(index)
        return NotFound()

    if not path.endswith(HTML_SUFFIX):
        found = _regular_file(root, path, on_error)
        if found is not None:
            return Serve(found)

    return Redirect(canonical(path))
