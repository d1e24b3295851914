import asyncio

import httpx
import pytest

from compiler.errors import DocumentGenerationError
from render.latex import ITEMIZE_BEGIN, PLACEHOLDERS, escape_latex, fill_latex_template
from render.templates import fetch_template, find_placeholders, list_templates, load_template
from schemas.resume import Resume


def test_templates_exist():
    templates = list_templates()
    assert "moderncv_classic" in templates
    assert "moderncv_banking" in templates


def test_bundled_templates_use_every_placeholder():
    for name in list_templates():
        assert find_placeholders(load_template(name)) == PLACEHOLDERS


def test_load_unknown_template():
    with pytest.raises(ValueError, match="not_a_template"):
        load_template("not_a_template")


def test_empty_resume_leaves_no_tokens_or_null_markers():
    filled = fill_latex_template(load_template("moderncv_classic"), Resume())
    assert find_placeholders(filled) == []
    for marker in ("undefined", "null", "None"):
        assert marker not in filled
    assert ITEMIZE_BEGIN not in filled
    assert "\\name{}{}" in filled


def test_single_experience_entry():
    resume = {
        "experience": [
            {
                "years": "2020-2022",
                "position": "Engineer",
                "company": "Acme",
                "location": "NYC",
                "description": "Built things",
            }
        ]
    }
    filled = fill_latex_template("\\section{Experience}\n<EXPERIENCE_BLOCKS>\n", resume)
    assert filled.count("\\cventry") == 1
    assert "\\cventry{2020-2022}{Engineer}{Acme}{NYC}{}{Built things}" in filled
    assert filled.startswith("\\section{Experience}\n")


def test_entries_keep_input_order_and_escape_values():
    resume = {
        "education": [
            {"years": "2016", "degree": "MSc", "institution": "R&D Institute"},
            {"years": "2012", "degree": "BSc", "institution": "State U"},
        ]
    }
    filled = fill_latex_template("<EDUCATION_BLOCKS>", resume)
    lines = filled.split("\n")
    assert lines == [
        "\\cventry{2016}{MSc}{R\\&D Institute}{}{}{}",
        "\\cventry{2012}{BSc}{State U}{}{}{}",
    ]


def test_empty_skills_emit_no_list_wrapper():
    filled = fill_latex_template("before<SKILLS_BLOCKS>after", {"skills": []})
    assert filled == "beforeafter"


def test_list_sections_are_wrapped_in_itemize():
    resume = {
        "skills": ["C#", "Go"],
        "projects": [{"name": "Site", "description": "Static blog"}],
        "certifications": [{"name": "CKA", "issuer": "CNCF"}],
        "additionalInfo": [{"type": "Languages", "description": "French"}],
    }
    template = "<SKILLS_BLOCKS>|<PROJECTS_BLOCKS>|<CERTIFICATIONS_BLOCKS>|<ADDITIONAL_INFO_BLOCKS>"
    skills, projects, certs, extra = fill_latex_template(template, resume).split("|")
    assert skills == "\\begin{itemize}[leftmargin=*]\n\\item C\\#\n\\item Go\n\\end{itemize}"
    assert "\\item Site: Static blog" in projects
    assert "\\item CKA (CNCF)" in certs
    assert "\\item Languages: French" in extra


def test_every_occurrence_is_replaced():
    filled = fill_latex_template("<FULL_NAME> / <FULL_NAME>", {"personalInfo": {"fullName": "Ada"}})
    assert filled == "Ada / Ada"


def test_substituted_values_are_not_rescanned():
    resume = {"skills": ["<SUMMARY>"], "summary": "real summary"}
    filled = fill_latex_template("<SKILLS_BLOCKS>\n<SUMMARY>", resume)
    assert "\\item <SUMMARY>" in filled
    assert filled.endswith("\nreal summary")


def test_unknown_tokens_are_left_alone():
    assert fill_latex_template("<NICKNAME> <PHONE>", {}) == "<NICKNAME> "


def test_escape_reserved_characters():
    assert escape_latex("50% & done_now") == "50\\% \\& done\\_now"
    assert escape_latex("$#{}~^") == "\\$\\#\\{\\}\\~\\^"


def test_escape_does_not_double_escape_backslash():
    assert escape_latex("a\\%b") == "a\\\\\\%b"
    assert escape_latex("C:\\temp") == "C:\\\\temp"


def test_escape_line_breaks_and_empty():
    assert escape_latex("line one\nline two") == "line one \\\\ line two"
    assert escape_latex("a\r\nb") == "a \\\\ b"
    assert escape_latex("") == ""
    assert escape_latex(None) == ""


def test_fetch_template_from_url():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/resume.tex"
        return httpx.Response(200, text="\\name{<FULL_NAME>}{}")

    text = asyncio.run(
        fetch_template("https://templates.test/resume.tex", transport=httpx.MockTransport(handler))
    )
    assert find_placeholders(text) == ["<FULL_NAME>"]


def test_fetch_template_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with pytest.raises(DocumentGenerationError):
        asyncio.run(fetch_template("https://templates.test/missing.tex", transport=transport))


def test_fetch_template_from_path_and_name(tmp_path):
    path = tmp_path / "custom.tex"
    path.write_text("<EMAIL>", encoding="utf-8")
    assert asyncio.run(fetch_template(str(path))) == "<EMAIL>"
    assert asyncio.run(fetch_template("moderncv_classic")) == load_template("moderncv_classic")
