"""PTx Build - Tune resolution

Finds the tune file for a user-supplied name or path and validates it.
"""
import os
import logging
from dataclasses import dataclass
from typing import List

from .constants import TUNES_DIR, TUNE_EXTENSIONS
from .errors import TuneNotFound, InvalidExtension
from .workspace import Workspace

logger = logging.getLogger("ptx_build.resolver")


@dataclass(frozen=True)
class TuneReference:
    """A resolved tune file.

    ``path`` is what goes into the incbin directive: relative to the working
    directory when the matching candidate was relative.
    """
    path: str
    source: str

    @property
    def file_name(self) -> str:
        return os.path.basename(self.path)

    @property
    def base(self) -> str:
        return os.path.splitext(self.file_name)[0]

    @property
    def extension(self) -> str:
        return os.path.splitext(self.file_name)[1]


def candidate_paths(tune_arg: str) -> List[str]:
    """Locations tried for a tune argument, in priority order."""
    name = os.path.basename(tune_arg)
    return [
        tune_arg,
        os.path.join(TUNES_DIR, tune_arg),
        os.path.join(TUNES_DIR, name),
        name,
    ]


def resolve_tune(workspace: Workspace, tune_arg: str) -> TuneReference:
    """Locate and validate the tune named by ``tune_arg``.

    Args:
        workspace: Working directory the relative candidates are resolved in
        tune_arg: Bare file name, relative path or absolute path

    Returns:
        TuneReference for the first candidate that exists

    Raises:
        TuneNotFound: No candidate exists
        InvalidExtension: The resolved file is not .pt2/.pt3
    """
    tune_path = None
    for candidate in candidate_paths(tune_arg):
        logger.debug(f"Trying tune candidate: {candidate}")
        if candidate and os.path.isfile(workspace.path(candidate)):
            tune_path = candidate
            break

    if tune_path is None:
        raise TuneNotFound(
            f"tune not found: '{tune_arg}' "
            f"(also tried '{os.path.join(TUNES_DIR, tune_arg)}')")

    if not tune_path.endswith(TUNE_EXTENSIONS):
        raise InvalidExtension(f"tune must be .pt2 or .pt3 (got: {tune_path})")

    tune_path = _prefer_resolvable(workspace, tune_path)
    logger.info(f"Resolved tune '{tune_arg}' -> {tune_path}")
    return TuneReference(path=tune_path, source=tune_arg)


def _prefer_resolvable(workspace: Workspace, tune_path: str) -> str:
    """Keep a relative path the assembler can open from the working directory,
    otherwise fall back to the absolute form."""
    if os.path.isabs(tune_path):
        return tune_path
    if os.path.isfile(os.path.join(workspace.root, tune_path)):
        return tune_path
    absolute = os.path.join(os.path.abspath(workspace.root), tune_path)
    if os.path.isfile(absolute):
        return absolute
    return tune_path
