from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from render.latex import fill_latex_template
from schemas.resume import Resume

from .client import CompiledArtifact, Compiler
from .errors import CompilationError

logger = logging.getLogger(__name__)


class DisplayHandle:
    """Bytes written to a temporary file for display/download."""

    def __init__(
        self,
        data: bytes,
        suffix: str,
        media_type: str,
        directory: Optional[Path] = None,
    ):
        fd, name = tempfile.mkstemp(
            prefix="resume_preview_",
            suffix=suffix,
            dir=str(directory) if directory else None,
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        self.path = Path(name)
        self.media_type = media_type
        self.released = False

    @classmethod
    def for_artifact(cls, artifact: CompiledArtifact, directory: Optional[Path] = None) -> "DisplayHandle":
        return cls(artifact.data, artifact.suffix, artifact.media_type, directory)

    @classmethod
    def for_source(cls, latex: str, directory: Optional[Path] = None) -> "DisplayHandle":
        return cls(latex.encode("utf-8"), ".tex", "application/x-tex", directory)

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released display handle %s", self.path)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"DisplayHandle({self.path.name}, {state})"


@dataclass
class PreviewResult:
    sequence: int
    latex: str
    handle: Optional[DisplayHandle] = None
    source: Optional[DisplayHandle] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PreviewSession:
    """
    Owns the preview of one consumer (a browser tab, a CLI run).

    Every refresh takes the next sequence number. Refreshes are not serialized,
    so they may finish in any order; only the most recently *issued* one is
    allowed to replace the displayed artifact and its .tex export, and the
    handles it replaces are released first. Results of superseded refreshes
    are dropped without ever creating a handle.
    """

    def __init__(self, compiler: Compiler, handle_dir: Optional[Path] = None):
        self.compiler = compiler
        self.handle_dir = handle_dir
        self.latest_sequence = 0
        self.current: Optional[DisplayHandle] = None
        self.current_source: Optional[DisplayHandle] = None
        self.closed = False

    def __enter__(self) -> "PreviewSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _is_latest(self, sequence: int) -> bool:
        return not self.closed and sequence == self.latest_sequence

    def _replace_current(
        self,
        handle: Optional[DisplayHandle] = None,
        source: Optional[DisplayHandle] = None,
    ) -> None:
        for previous in (self.current, self.current_source):
            if previous is not None:
                previous.release()
        self.current = handle
        self.current_source = source

    async def refresh(
        self, template_text: str, resume: Union[Resume, Mapping]
    ) -> Optional[PreviewResult]:
        """
        Regenerate the preview. Returns ``None`` when a newer refresh was issued
        before this one completed.
        """
        if self.closed:
            raise RuntimeError("Preview session is closed")

        self.latest_sequence += 1
        sequence = self.latest_sequence

        try:
            latex = fill_latex_template(template_text, resume)
            artifact = await self.compiler.compile(latex)
        except CompilationError as exc:
            if not self._is_latest(sequence):
                logger.info("Dropping failed preview #%s; #%s is newer", sequence, self.latest_sequence)
                return None
            logger.warning("Preview #%s failed: %s", sequence, exc)
            source = DisplayHandle.for_source(latex, self.handle_dir)
            self._replace_current(source=source)
            return PreviewResult(sequence=sequence, latex=latex, source=source, error=str(exc))
        except Exception:
            # Invalid input or an unexpected compiler fault: the newest request
            # still owns the preview, so nothing older may stay on display.
            if self._is_latest(sequence):
                self._replace_current()
            raise

        if not self._is_latest(sequence):
            logger.info("Dropping stale preview #%s; #%s is newer", sequence, self.latest_sequence)
            return None

        handle = DisplayHandle.for_artifact(artifact, self.handle_dir)
        source = DisplayHandle.for_source(latex, self.handle_dir)
        self._replace_current(handle, source)
        logger.info("Preview #%s ready (%s bytes)", sequence, artifact.size)
        return PreviewResult(sequence=sequence, latex=latex, handle=handle, source=source)

    def close(self) -> None:
        self._replace_current()
        self.closed = True
