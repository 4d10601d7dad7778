# core/scratch.py
"""
Run-scoped scratch directories.

A directory that already exists means a previous run left output behind, so
creation fails fast instead of merging with stale data. Creation uses an
atomic mkdir, so two runs racing for the same name cannot both succeed.
"""
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from mediaflow.core.errors import ScratchConflictError
from mediaflow.core.logger import logger


class ScratchArea:
    """
    Named scratch directories owned by exactly one run.

    `stages` maps a stage name (e.g. "downloads", "artifacts") to its path.
    """

    def __init__(self, stages: Dict[str, Path]):
        if not stages:
            raise ValueError("ScratchArea needs at least one stage directory")
        self.stages = {name: Path(path) for name, path in stages.items()}
        self._created: List[str] = []

    def __getitem__(self, stage: str) -> Path:
        return self.stages[stage]

    def path(self, stage: str) -> Path:
        return self.stages[stage]

    def existing(self) -> List[Path]:
        return [path for path in self.stages.values() if path.exists()]

    def create(self, replace_existing: bool = False) -> "ScratchArea":
        """
        Create every stage directory.

        Raises:
            ScratchConflictError: a stage directory already exists and
                `replace_existing` is False. Directories created by this call
                are removed again before raising.
        """
        if replace_existing:
            for path in self.existing():
                logger.warning(f"Removing existing scratch directory {path}")
                shutil.rmtree(path)

        for name, path in self.stages.items():
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.mkdir(exist_ok=False)
            except FileExistsError:
                self._rollback()
                logger.error(f"Scratch directory {path} already exists")
                raise ScratchConflictError(path) from None
            self._created.append(name)

        logger.info(f"Scratch area ready: {', '.join(str(p) for p in self.stages.values())}")
        return self

    def release(self, stage: str) -> None:
        """Delete one stage once nothing downstream needs it."""
        path = self.stages[stage]
        if path.exists():
            shutil.rmtree(path)
            logger.info(f"Removed scratch directory {path}")
        if stage in self._created:
            self._created.remove(stage)

    def release_all(self) -> None:
        for stage in list(self.stages):
            self.release(stage)

    def _rollback(self) -> None:
        for name in reversed(self._created):
            path = self.stages[name]
            if path.exists():
                shutil.rmtree(path)
        self._created.clear()

    def __repr__(self) -> str:
        return f"ScratchArea({self.stages!r})"


def file_destination(directory: Path, relative_key: str, suffix_index: Optional[int] = None) -> Path:
    """
    Path under `directory` for `relative_key`, creating parent directories.
    A `suffix_index` > 0 is appended to the stem (`face.jpg` -> `face_1.jpg`).
    """
    destination = directory / relative_key
    if suffix_index:
        destination = destination.with_name(f"{destination.stem}_{suffix_index}{destination.suffix}")
    destination.parent.mkdir(parents=True, exist_ok=True)
    return destination
