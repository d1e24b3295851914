from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from schemas.resume import PersonalInfo, Resume

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"[+]?[1-9]?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}")
DIGIT_RUN_RE = re.compile(r"\d{3}")
SKILL_SPLIT_RE = re.compile(r"[,;|]")

SUMMARY_KEYWORDS = ("summary", "objective", "profile", "about")
SKILLS_KEYWORDS = ("skills", "technologies", "technical skills", "competencies")
MAX_SKILLS = 20
FALLBACK_SUMMARY_CHARS = 500


@dataclass
class ResumeParseResult:
    raw_text: str
    method: str
    metadata: Optional[dict] = None


def _extract_with_pdfplumber(path: str) -> Optional[str]:
    try:
        import pdfplumber
    except Exception as exc:  # pragma: no cover - import guard
        logger.info("pdfplumber unavailable: %s", exc)
        return None

    try:
        text_chunks = []
        with pdfplumber.open(path) as pdf:
            for page in pdf.pages:
                text_chunks.append(page.extract_text() or "")
        text = "\n".join(text_chunks).strip()
        return text or None
    except Exception as exc:  # pragma: no cover - safety
        logger.warning("pdfplumber failed, will fallback: %s", exc)
        return None


def _extract_with_pymupdf(path: str) -> Optional[str]:
    try:
        import fitz  # type: ignore
    except Exception as exc:  # pragma: no cover - import guard
        logger.info("pymupdf unavailable: %s", exc)
        return None

    try:
        doc = fitz.open(path)
        text_chunks = [page.get_text() for page in doc]
        text = "\n".join(text_chunks).strip()
        return text or None
    except Exception as exc:  # pragma: no cover - safety
        logger.warning("pymupdf failed: %s", exc)
        return None


def parse_resume_pdf(path: str) -> ResumeParseResult:
    """
    Extract resume text preferring pdfplumber first, then falling back to pymupdf.
    """
    text = _extract_with_pdfplumber(path)
    method_used = "pdfplumber"

    if not text or _is_low_quality(text):
        fallback_text = _extract_with_pymupdf(path)
        if fallback_text:
            text = fallback_text
            method_used = "pymupdf"

    if not text:
        raise ValueError("Unable to extract text from PDF with available extractors")

    return ResumeParseResult(raw_text=text, method=method_used, metadata={"path": path})


def extract_text(path: str) -> ResumeParseResult:
    """Extract raw text from an uploaded .txt or .pdf resume."""
    suffix = Path(path).suffix.lower()
    if suffix == ".txt":
        text = Path(path).read_text(encoding="utf-8", errors="replace")
        return ResumeParseResult(raw_text=text, method="text", metadata={"path": path})
    if suffix == ".pdf":
        return parse_resume_pdf(path)
    raise ValueError(f"Unsupported file type: {Path(path).name}. Please upload a TXT or PDF file.")


def _is_low_quality(text: str) -> bool:
    # Basic heuristic: very few unique words implies extraction failed.
    words = [w for w in text.split() if w.isalpha()]
    unique_ratio = len(set(words)) / max(len(words), 1)
    return unique_ratio < 0.15 or len(text) < 100


def parse_resume_text(text: str) -> Resume:
    """
    Best-effort structuring of plain resume text.

    Only contact details, a summary and a flat skill list are recovered;
    experience and education are left for the user to fill in.
    """
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    personal = PersonalInfo()

    email = EMAIL_RE.search(text)
    if email:
        personal.email = email.group(0)

    phone = PHONE_RE.search(text)
    if phone:
        personal.phone = phone.group(0).strip()

    if lines:
        first = lines[0]
        if len(first) < 50 and "@" not in first and not DIGIT_RUN_RE.search(first):
            personal.full_name = first

    summary = ""
    for i, line in enumerate(lines):
        lowered = line.lower()
        if any(keyword in lowered for keyword in SUMMARY_KEYWORDS):
            summary_lines = [l for l in lines[i + 1 : i + 4] if len(l) > 20]
            if summary_lines:
                summary = " ".join(summary_lines)
                break

    skills = []
    for i, line in enumerate(lines):
        lowered = line.lower()
        if any(keyword in lowered for keyword in SKILLS_KEYWORDS):
            joined = " ".join(lines[i + 1 : i + 5])
            skills = [s.strip() for s in SKILL_SPLIT_RE.split(joined) if len(s.strip()) > 1]
            skills = skills[:MAX_SKILLS]
            break

    # Nothing structured found: keep the opening of the document as a summary.
    if not summary and len(text) > 100:
        summary = text[:FALLBACK_SUMMARY_CHARS]
        if len(text) > FALLBACK_SUMMARY_CHARS:
            summary += "..."

    logger.info(
        "Parsed resume text: name=%s email=%s skills=%s",
        bool(personal.full_name),
        bool(personal.email),
        len(skills),
    )
    return Resume(personal_info=personal, summary=summary, skills=skills)


def validate_resume_data(resume: Resume) -> bool:
    """Whether an imported resume carries enough to be worth previewing."""
    info = resume.personal_info
    has_personal_info = bool(info.full_name or info.email)
    has_content = bool(resume.summary or resume.experience or resume.skills)
    return has_personal_info or has_content
