from __future__ import annotations

import logging
import pathlib
from typing import Dict, List, Optional

import httpx

import config
from compiler.errors import DocumentGenerationError
from render.latex import PLACEHOLDERS

logger = logging.getLogger(__name__)

TEMPLATE_DIR = config.TEMPLATE_DIR


def list_templates(template_dir: Optional[pathlib.Path] = None) -> Dict[str, pathlib.Path]:
    directory = template_dir or TEMPLATE_DIR
    return {p.stem: p for p in sorted(directory.glob("*.tex"))}


def load_template(template_name: str, template_dir: Optional[pathlib.Path] = None) -> str:
    templates = list_templates(template_dir)
    if template_name not in templates:
        raise ValueError(f"Template {template_name} not found. Available: {list(templates)}")
    return templates[template_name].read_text(encoding="utf-8")


async def fetch_template(
    source: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: Optional[float] = 30.0,
) -> str:
    """
    Resolve a template source: an http(s) URL, a path to a .tex file, or the
    name of a bundled template.
    """
    if source.startswith(("http://", "https://")):
        logger.info("Fetching template from %s", source)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                resp = await client.get(source)
        except httpx.HTTPError as exc:
            raise DocumentGenerationError() from exc
        if not resp.is_success:
            raise DocumentGenerationError(resp.status_code)
        return resp.text

    path = pathlib.Path(source)
    if path.suffix == ".tex" and path.exists():
        return path.read_text(encoding="utf-8")
    return load_template(source)


def find_placeholders(template: str) -> List[str]:
    """Placeholder tokens present in ``template``, in vocabulary order."""
    return [token for token in PLACEHOLDERS if token in template]
