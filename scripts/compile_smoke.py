"""
Minimal one-call smoke test to verify the LaTeX compiler backend.

Usage:
  COMPILER_BACKEND=cloud python scripts/compile_smoke.py --template moderncv_classic
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure repository root is on sys.path for local execution.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import config
from compiler.errors import CompilationError
from compiler.pipeline import generate
from render.templates import fetch_template

SAMPLE = {
    "personalInfo": {"fullName": "Smoke", "lastName": "Test", "email": "smoke@example.com"},
    "summary": "Checks that 100% of the pipeline works & compiles.",
    "skills": ["Python", "LaTeX"],
}


def main():
    parser = argparse.ArgumentParser(description="LaTeX compiler smoke test (single call).")
    parser.add_argument("--template", default=config.DEFAULT_TEMPLATE, help="Template name, .tex path or URL.")
    parser.add_argument("--out", type=Path, default=None, help="Where to write the compiled artifact.")
    args = parser.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL)

    async def run():
        template_text = await fetch_template(args.template)
        return await generate(template_text, SAMPLE)

    try:
        artifact = asyncio.run(run())
    except CompilationError as exc:
        raise SystemExit(f"Compilation failed: {exc}")

    print(f"Compiled {artifact.size} bytes ({artifact.media_type}) via {config.COMPILER_BACKEND}")
    if args.out:
        args.out.write_bytes(artifact.data)
        print("Wrote", args.out)


if __name__ == "__main__":
    main()
