from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import httpx

from .errors import (
    CompilerUnavailableError,
    DocumentGenerationError,
    RemoteCompilationError,
)

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "dvi": "application/x-dvi",
    "ps": "application/postscript",
}


@dataclass(frozen=True)
class CompiledArtifact:
    data: bytes
    media_type: str = "application/pdf"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def suffix(self) -> str:
        for fmt, media_type in MEDIA_TYPES.items():
            if media_type == self.media_type:
                return f".{fmt}"
        return ".bin"


class Compiler(Protocol):
    async def compile(self, latex: str) -> CompiledArtifact: ...


class CloudCompiler:
    """Compile LaTeX through a remote compile-as-a-service JSON endpoint."""

    def __init__(
        self,
        url: str,
        compiler: str = "pdflatex",
        output_format: str = "pdf",
        timeout: Optional[float] = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.compiler = compiler
        self.output_format = output_format
        self.timeout = timeout
        self._transport = transport

    async def compile(self, latex: str) -> CompiledArtifact:
        payload = {"compiler": self.compiler, "code": latex, "output": self.output_format}
        logger.info(
            "Posting %s chars of LaTeX to %s (%s -> %s)",
            len(latex),
            self.url,
            self.compiler,
            self.output_format,
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url=self.url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Compile request failed: %s", exc)
            raise DocumentGenerationError() from exc

        if not resp.is_success:
            logger.warning("Compiler answered HTTP %s", resp.status_code)
            raise DocumentGenerationError(resp.status_code)

        try:
            result = resp.json()
        except ValueError as exc:
            logger.warning("Compiler response is not JSON")
            raise DocumentGenerationError(resp.status_code) from exc

        if not isinstance(result, dict):
            raise RemoteCompilationError("Malformed compiler response")
        if not result.get("success") or not result.get("output"):
            logger.warning("Remote compilation failed: %s", result.get("error"))
            raise RemoteCompilationError(result.get("error"))

        output = result["output"]
        if isinstance(output, str):
            # Payloads may arrive MIME-wrapped across lines.
            output = "".join(output.split())
        try:
            data = base64.b64decode(output, validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            raise RemoteCompilationError("Compiler returned an invalid base64 payload") from exc

        logger.info("Received %s bytes of %s", len(data), self.output_format)
        return CompiledArtifact(
            data=data,
            media_type=MEDIA_TYPES.get(self.output_format, "application/octet-stream"),
        )


def latexmk_available() -> bool:
    return shutil.which("latexmk") is not None


class LatexmkCompiler:
    """Compile LaTeX with a local latexmk install."""

    def __init__(self, engine_flag: str = "-pdf"):
        self.engine_flag = engine_flag

    async def compile(self, latex: str) -> CompiledArtifact:
        if not latexmk_available():
            raise CompilerUnavailableError("latexmk is not installed. Install TeX Live or MikTeX.")
        data = await asyncio.to_thread(self._compile_sync, latex)
        return CompiledArtifact(data=data)

    def _compile_sync(self, latex: str) -> bytes:
        with tempfile.TemporaryDirectory(prefix="resume_preview_") as tmp:
            output_dir = Path(tmp)
            tex_path = output_dir / "resume.tex"
            tex_path.write_text(latex, encoding="utf-8")

            logger.info("Running latexmk in %s", output_dir)
            try:
                subprocess.run(
                    ["latexmk", self.engine_flag, "-interaction=nonstopmode", tex_path.name],
                    cwd=output_dir,
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except subprocess.CalledProcessError as exc:  # pragma: no cover - external tool
                logger.error("latexmk failed: %s", exc.stderr)
                raise RemoteCompilationError(_log_tail(output_dir / "resume.log", exc)) from exc

            pdf_path = output_dir / "resume.pdf"
            if not pdf_path.exists():  # pragma: no cover - external tool
                raise RemoteCompilationError("PDF file was not generated")
            return pdf_path.read_bytes()


def _log_tail(log_path: Path, exc: subprocess.CalledProcessError, lines: int = 20) -> str:
    # LaTeX errors start with "!"; fall back to the end of stderr.
    if log_path.exists():
        content = log_path.read_text(encoding="utf-8", errors="ignore").splitlines()
        errors = [line for line in content if line.startswith("!")]
        if errors:
            return "\n".join(errors[:lines])
    stderr = (exc.stderr or b"").decode("utf-8", errors="ignore")
    return "\n".join(stderr.splitlines()[-lines:]) or f"latexmk exited with {exc.returncode}"


def build_compiler(backend: str, **settings) -> Compiler:
    normalized = backend.strip().lower()
    if normalized == "cloud":
        return CloudCompiler(
            url=settings["url"],
            compiler=settings.get("compiler", "pdflatex"),
            output_format=settings.get("output_format", "pdf"),
            timeout=settings.get("timeout", 60.0),
            transport=settings.get("transport"),
        )
    if normalized == "latexmk":
        return LatexmkCompiler()
    raise ValueError(f"Unknown compiler backend: {backend}")
