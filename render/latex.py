from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Mapping, Union

from schemas.resume import Resume

logger = logging.getLogger(__name__)

# One pass over the text: a reserved character (backslash included) or a line break.
_LATEX_SPECIAL = re.compile(r"[%$&#_{}~^\\]|\r\n|\r|\n")
_LINE_BREAK = " \\\\ "

ITEMIZE_BEGIN = "\\begin{itemize}[leftmargin=*]"
ITEMIZE_END = "\\end{itemize}"


def escape_latex(text: str) -> str:
    """
    Escape LaTeX special characters and turn line breaks into ``\\\\``.

    Each reserved character gets exactly one leading backslash, so a backslash
    already present in the input is escaped once and never compounds with the
    character after it.
    """
    if not text:
        return ""

    def _replace(match: re.Match) -> str:
        char = match.group(0)
        if char in ("\r\n", "\r", "\n"):
            return _LINE_BREAK
        return "\\" + char

    return _LATEX_SPECIAL.sub(_replace, text)


def _cventry(*slots: str) -> str:
    # moderncv: \cventry{years}{title}{org}{location}{grade}{description}
    years, title, org, location, description = (escape_latex(s) for s in slots)
    return f"\\cventry{{{years}}}{{{title}}}{{{org}}}{{{location}}}{{}}{{{description}}}"


def _itemize(items: List[str]) -> str:
    if not items:
        return ""
    body = "\n".join(f"\\item {item}" for item in items)
    return f"{ITEMIZE_BEGIN}\n{body}\n{ITEMIZE_END}"


def _experience_blocks(resume: Resume) -> str:
    return "\n".join(
        _cventry(exp.years, exp.position, exp.company, exp.location, exp.description)
        for exp in resume.experience
    )


def _education_blocks(resume: Resume) -> str:
    return "\n".join(
        _cventry(edu.years, edu.degree, edu.institution, edu.location, edu.details)
        for edu in resume.education
    )


def _skills_blocks(resume: Resume) -> str:
    return _itemize([escape_latex(skill.name) for skill in resume.skills])


def _projects_blocks(resume: Resume) -> str:
    return _itemize(
        [f"{escape_latex(p.name)}: {escape_latex(p.description)}" for p in resume.projects]
    )


def _certifications_blocks(resume: Resume) -> str:
    return _itemize(
        [f"{escape_latex(c.name)} ({escape_latex(c.issuer)})" for c in resume.certifications]
    )


def _additional_info_blocks(resume: Resume) -> str:
    return _itemize(
        [
            f"{escape_latex(info.category)}: {escape_latex(info.description)}"
            for info in resume.additional_info
        ]
    )


SCALAR_PLACEHOLDERS: Dict[str, Callable[[Resume], str]] = {
    "<FULL_NAME>": lambda r: r.personal_info.full_name,
    "<LAST_NAME>": lambda r: r.personal_info.last_name,
    "<JOB_TITLE>": lambda r: r.personal_info.job_role,
    "<ADDRESS>": lambda r: r.personal_info.address,
    "<CITY>": lambda r: r.personal_info.city,
    "<ZIP>": lambda r: r.personal_info.zip,
    "<PHONE>": lambda r: r.personal_info.phone,
    "<EMAIL>": lambda r: r.personal_info.email,
    "<PORTFOLIO>": lambda r: r.personal_info.portfolio,
    "<LINKEDIN>": lambda r: r.personal_info.linkedin,
    "<SUMMARY>": lambda r: r.summary,
}

BLOCK_PLACEHOLDERS: Dict[str, Callable[[Resume], str]] = {
    "<EXPERIENCE_BLOCKS>": _experience_blocks,
    "<EDUCATION_BLOCKS>": _education_blocks,
    "<SKILLS_BLOCKS>": _skills_blocks,
    "<PROJECTS_BLOCKS>": _projects_blocks,
    "<CERTIFICATIONS_BLOCKS>": _certifications_blocks,
    "<ADDITIONAL_INFO_BLOCKS>": _additional_info_blocks,
}

PLACEHOLDERS: List[str] = list(SCALAR_PLACEHOLDERS) + list(BLOCK_PLACEHOLDERS)

_PLACEHOLDER_PATTERN = re.compile("|".join(re.escape(token) for token in PLACEHOLDERS))


def placeholder_values(resume: Resume) -> Dict[str, str]:
    """Compute the substitution text for every token in the vocabulary."""
    values = {token: escape_latex(get(resume)) for token, get in SCALAR_PLACEHOLDERS.items()}
    values.update({token: render(resume) for token, render in BLOCK_PLACEHOLDERS.items()})
    return values


def fill_latex_template(template: str, resume: Union[Resume, Mapping]) -> str:
    """
    Substitute resume fields into a LaTeX template.

    All tokens are replaced in a single scan, so substituted text is never
    scanned again for further tokens.
    """
    if not isinstance(resume, Resume):
        resume = Resume.model_validate(resume)

    values = placeholder_values(resume)
    filled = _PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(0)], template)
    logger.debug("Filled template: %s chars in, %s chars out", len(template), len(filled))
    return filled
