"""
Save directory resolution.

Image tools must never lose a generation just because the requested output
location is unusable. The requested directory is resolved against the
working directory, created if missing and probed for write access; if any
of that fails the images go to the working directory instead, and the
fallback is logged and reported so the caller can tell it happened.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import SaveDirectoryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveDirResolution:
    """Outcome of resolving a save directory"""
    path: str
    fell_back: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class SaveTarget:
    """Where the images of one tool call are written"""
    directory: str
    file_name_base: str
    output_format: str = "png"

    def path_for(self, index: int, count: int) -> str:
        """Absolute path of the image at ``index`` (0-based) out of ``count``"""
        suffix = f"-{index + 1}" if count > 1 else ""
        file_name = f"{self.file_name_base}{suffix}.{self.output_format}"
        return os.path.abspath(os.path.join(self.directory, file_name))


def _ensure_writable_dir(path: str) -> None:
    """Create ``path`` (with parents) and check it can be written to"""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise SaveDirectoryError(f"Failed to create directory {path}: {e}", path=path)

    if not os.path.isdir(path):
        raise SaveDirectoryError(f"Save path {path} is not a directory", path=path)

    if not os.access(path, os.W_OK):
        raise SaveDirectoryError(f"No write permission for directory {path}", path=path)


def resolve_save_dir(
    save_dir: Optional[str] = None,
    cwd: Optional[str] = None,
    strict: bool = False,
) -> SaveDirResolution:
    """
    Resolve a caller supplied save directory to an absolute writable directory.

    Args:
        save_dir: Requested directory, absolute or relative to ``cwd``. None uses ``cwd``.
        cwd: Base directory for relative paths and for the fallback (default: process cwd)
        strict: Raise instead of falling back when the requested directory is unusable

    Returns:
        SaveDirResolution with the directory to write into

    Raises:
        SaveDirectoryError: in strict mode, or when the fallback directory is unusable too
    """
    base_dir = os.path.abspath(cwd or os.getcwd())

    if not save_dir:
        resolved = base_dir
    elif os.path.isabs(save_dir):
        resolved = save_dir
    else:
        resolved = os.path.abspath(os.path.join(base_dir, save_dir))

    try:
        _ensure_writable_dir(resolved)
        return SaveDirResolution(path=resolved)
    except SaveDirectoryError as e:
        if strict or resolved == base_dir:
            logger.error(f"Save directory unusable: {e}")
            raise SaveDirectoryError(
                f"Save directory ({resolved}) is not writeable or could not be created: {e}",
                path=resolved,
            )
        reason = str(e)

    logger.warning(f"{reason}; falling back to base directory {base_dir}")
    try:
        _ensure_writable_dir(base_dir)
    except SaveDirectoryError as e:
        logger.error(f"Fallback save directory unusable: {e}")
        raise SaveDirectoryError(
            f"Save directory ({resolved}) is unusable and fallback ({base_dir}) failed: {e}",
            path=base_dir,
        )

    return SaveDirResolution(path=base_dir, fell_back=True, reason=reason)


def safe_file_name(file_name: Optional[str], default: str) -> str:
    """Reduce a caller supplied base file name to a bare name inside the save dir"""
    if not file_name or not file_name.strip():
        return default
    name = Path(file_name.strip()).name
    if not name or name in (".", ".."):
        return default
    if name != file_name.strip():
        logger.warning(f"File name '{file_name}' reduced to '{name}'")
    return name
