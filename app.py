import json
import logging
from typing import Optional

import gradio as gr
from pydantic import ValidationError

import config
from compiler.session import PreviewSession
from render.templates import find_placeholders, list_templates, load_template
from resume_parser.parser import extract_text, parse_resume_text, validate_resume_data
from schemas.resume import Resume

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("resume_preview_builder")

APP_TITLE = "Resume LaTeX Preview"

SAMPLE_RESUME = {
    "personalInfo": {
        "fullName": "Alex",
        "lastName": "Applicant",
        "jobRole": "Software Engineer",
        "city": "New York",
        "email": "alex@example.com",
    },
    "summary": "Engineer who ships things.",
    "experience": [
        {
            "years": "2020-2022",
            "position": "Engineer",
            "company": "Acme",
            "location": "NYC",
            "description": "Built things",
        }
    ],
    "skills": [{"name": "Python"}, {"name": "LaTeX"}],
}


def import_resume(upload):
    """Turn an uploaded PDF/TXT resume into editable JSON."""
    if not upload:
        return gr.update(), "Please upload a resume (PDF or TXT)."
    path = upload if isinstance(upload, str) else getattr(upload, "name", "")
    try:
        result = extract_text(path)
        resume = parse_resume_text(result.raw_text)
    except Exception as exc:
        logger.warning("Resume import failed: %s", exc)
        return gr.update(), f"Import failed: {exc}"

    logs = [f"Extracted text using {result.method}"]
    if not validate_resume_data(resume):
        logs.append("Could not find contact details or content; please fill the form manually.")
    return json.dumps(resume.to_form_json(), indent=2), "\n".join(logs)


async def generate_preview(
    resume_json: str,
    template_choice: str,
    session: Optional[PreviewSession],
):
    if session is None:
        session = PreviewSession(config.default_compiler())

    try:
        resume = Resume.model_validate(json.loads(resume_json or "{}"))
    except (json.JSONDecodeError, ValidationError) as exc:
        return "", f"Invalid resume JSON: {exc}", None, None, session

    try:
        template_text = load_template(template_choice)
    except ValueError as exc:
        return "", str(exc), None, None, session

    logger.info(
        "Generating preview with %s (%s placeholders)",
        template_choice,
        len(find_placeholders(template_text)),
    )
    result = await session.refresh(template_text, resume)
    if result is None:
        # A newer request owns the preview; leave the outputs alone.
        return gr.update(), gr.update(), gr.update(), gr.update(), session

    tex_path = str(result.source.path)
    if not result.ok:
        return result.latex, result.error, tex_path, None, session
    return (
        result.latex,
        f"Preview #{result.sequence} ready.",
        tex_path,
        str(result.handle.path),
        session,
    )


def _close_session(session: Optional[PreviewSession]) -> None:
    # Called by Gradio when the browser session ends.
    if session is not None:
        session.close()


def build_ui():
    templates = list_templates()
    template_names = list(templates.keys()) or [config.DEFAULT_TEMPLATE]
    default_template = (
        config.DEFAULT_TEMPLATE if config.DEFAULT_TEMPLATE in template_names else template_names[0]
    )

    with gr.Blocks(title=APP_TITLE) as demo:
        gr.Markdown(f"# {APP_TITLE}\nFill a LaTeX resume template and compile a PDF preview.")
        session = gr.State(None, delete_callback=_close_session)
        with gr.Row():
            with gr.Column():
                resume_json = gr.Code(
                    label="Resume JSON",
                    language="json",
                    value=json.dumps(SAMPLE_RESUME, indent=2),
                )
                template_choice = gr.Dropdown(
                    label="Template", choices=template_names, value=default_template
                )
                upload = gr.File(label="Import resume (PDF or TXT)", file_types=[".pdf", ".txt"], type="filepath")
                import_btn = gr.Button("Import resume")
            with gr.Column():
                status_box = gr.Textbox(label="Status", lines=6, interactive=False)
                pdf_download = gr.File(label="PDF preview")
                tex_download = gr.File(label="Export .tex")

        generate_btn = gr.Button("Generate preview")
        latex_preview = gr.Code(label="Filled LaTeX")

        import_btn.click(
            fn=import_resume,
            inputs=upload,
            outputs=[resume_json, status_box],
        )
        generate_btn.click(
            fn=generate_preview,
            inputs=[resume_json, template_choice, session],
            outputs=[latex_preview, status_box, tex_download, pdf_download, session],
        )

    return demo


if __name__ == "__main__":
    app = build_ui()
    app.launch(server_name="0.0.0.0", server_port=config.PORT)
