"""
Runtime configuration for the resume preview builder.

Every setting can be overridden with an environment variable of the same name.
"""
import os
from pathlib import Path
from typing import Optional

CLOUD_COMPILER_URL = os.getenv("CLOUD_COMPILER_URL", "https://api.cloudcompiler.app/compile")
LATEX_COMPILER = os.getenv("LATEX_COMPILER", "pdflatex")
COMPILER_OUTPUT = os.getenv("COMPILER_OUTPUT", "pdf")

# "cloud" posts to CLOUD_COMPILER_URL, "latexmk" compiles on this machine.
COMPILER_BACKEND = os.getenv("COMPILER_BACKEND", "cloud")

TEMPLATE_DIR = Path(
    os.getenv("TEMPLATE_DIR", str(Path(__file__).resolve().parent / "templates"))
)
DEFAULT_TEMPLATE = os.getenv("DEFAULT_TEMPLATE", "moderncv_classic")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "7860"))


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    value = float(raw)
    return value if value > 0 else None


# Seconds; 0 or empty waits indefinitely.
COMPILER_TIMEOUT = _parse_timeout(os.getenv("COMPILER_TIMEOUT", "60"))


def default_compiler():
    """Build the compiler selected by COMPILER_BACKEND."""
    from compiler.client import build_compiler

    return build_compiler(
        COMPILER_BACKEND,
        url=CLOUD_COMPILER_URL,
        compiler=LATEX_COMPILER,
        output_format=COMPILER_OUTPUT,
        timeout=COMPILER_TIMEOUT,
    )
