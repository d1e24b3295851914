from __future__ import annotations

from typing import Mapping, Optional, Union

from render.latex import fill_latex_template
from schemas.resume import Resume

from .client import CompiledArtifact, Compiler


async def generate(
    template_text: str,
    resume: Union[Resume, Mapping],
    compiler: Optional[Compiler] = None,
) -> CompiledArtifact:
    """Fill ``template_text`` with ``resume`` and compile the result."""
    if compiler is None:
        import config

        compiler = config.default_compiler()

    latex = fill_latex_template(template_text, resume)
    return await compiler.compile(latex)
