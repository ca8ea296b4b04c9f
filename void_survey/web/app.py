from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

import structlog
from fastapi import BackgroundTasks, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.templating import Jinja2Templates

from ..catalog import SECTION_ORDER, is_free_form, load_catalog, title_case
from ..config import SurveySettings, load_settings
from ..exceptions import ItemNotFoundError, SurveyError, SurveyImportError, SurveyValidationError
from ..logging_setup import configure_logging
from ..models import FeatureNotes
from ..persistence import DraftStore
from ..remote import SubmissionLog, submit_and_log
from ..session import RECORD_FIELDS, SurveySession
from ..utils import money, parse_qty


TEMPLATES_DIR = Path(__file__).parent / "templates"

log = structlog.get_logger(__name__)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["title_case"] = title_case
templates.env.filters["money"] = money

_MEDIA = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
    "zip": "application/zip",
}


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _content_disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names go in filename* (RFC 6266)
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _download(filename: str, data: bytes, kind: str) -> Response:
    return Response(
        content=data,
        media_type=_MEDIA[kind],
        headers={"Content-Disposition": _content_disposition(filename)},
    )


def _checkbox(val: Optional[str]) -> bool:
    # HTML checkboxes post 'on' when ticked and nothing otherwise
    return bool(val) and val.lower() not in ("0", "false", "off", "no")


def create_app(settings: Optional[SurveySettings] = None, session: Optional[SurveySession] = None) -> FastAPI:
    settings = settings or load_settings()
    if session is None:
        session = SurveySession(
            load_catalog(settings.catalog_path),
            settings,
            DraftStore(settings.drafts_dir, key=settings.draft_key),
        )
    submissions = SubmissionLog()

    app = FastAPI(title="Empty Homes Survey")
    app.state.session = session
    app.state.submissions = submissions

    @app.exception_handler(SurveyError)
    async def survey_error_handler(request: Request, exc: SurveyError):
        status = 404 if isinstance(exc, ItemNotFoundError) else 400
        return JSONResponse({"detail": str(exc)}, status_code=status)

    def _form_page(request: Request, status_code: int = 200, **extra) -> HTMLResponse:
        section = request.query_params.get("section", "")
        q = request.query_params.get("q", "")
        ctx: Dict[str, Any] = {
            "record": session.record,
            "sections": [(s, session.store.items(s), is_free_form(s)) for s in SECTION_ORDER],
            "totals": session.totals(),
            "recharge": session.recharge_lines(),
            "search_section": section,
            "search_query": q,
            "search_results": session.catalog.search(section, q) if section and q else [],
            "submissions": submissions.status(),
        }
        ctx.update(extra)
        return templates.TemplateResponse(request, "survey.html", ctx, status_code=status_code)

    @app.get("/", response_class=HTMLResponse)
    def start_screen(request: Request):
        if session.should_offer_resume():
            return templates.TemplateResponse(request, "resume.html", {})
        if session.active:
            return _redirect("/survey")
        return templates.TemplateResponse(request, "start.html", {"record": session.record, "error": None})

    @app.post("/start")
    async def start_survey(request: Request, surveyor_name: str = Form(""), property_address: str = Form("")):
        try:
            session.start(surveyor_name, property_address)
        except SurveyValidationError as e:
            return templates.TemplateResponse(
                request,
                "start.html",
                {"record": session.record, "error": str(e), "surveyor_name": surveyor_name, "property_address": property_address},
                status_code=400,
            )
        return _redirect("/survey")

    @app.post("/survey/new")
    async def new_survey():
        session.new_survey()
        return _redirect("/")

    @app.post("/draft/resume")
    async def resume_draft():
        session.resume()
        return _redirect("/survey" if session.active else "/")

    @app.post("/draft/discard")
    async def discard_draft():
        session.discard_draft()
        return _redirect("/")

    @app.get("/survey", response_class=HTMLResponse)
    def survey_form(request: Request):
        if not session.active:
            return _redirect("/")
        return _form_page(request)

    @app.post("/survey/fields")
    async def update_fields(request: Request):
        form = await request.form()
        for name in RECORD_FIELDS:
            if name == "mwr_required":
                continue
            if name in form:
                session.set_field(name, str(form[name]))
        if "mwr_present" in form:
            session.set_field("mwr_required", _checkbox(form.get("mwr_required")))
        for name in FeatureNotes.model_fields:
            if name not in form:
                continue
            value = str(form[name])
            if name in ("loft_checked", "loft_needs_clearing"):
                session.set_note(name, None if value == "" else value == "yes")
            else:
                session.set_note(name, value)
        return _redirect("/survey")

    @app.post("/survey/items/add")
    async def add_item(section: str = Form(...), code: str = Form(...)):
        if session.add_from_catalog(section, code) is None:
            raise ItemNotFoundError(section, code)
        return _redirect("/survey")

    @app.post("/survey/items/free-form")
    async def add_free_form(section: str = Form(...)):
        if not is_free_form(section):
            raise SurveyValidationError(f"{section} does not take free-form items")
        session.add_item(section, {"contractor": ""} if section == "contractor work" else {})
        return _redirect("/survey")

    @app.post("/survey/items/{item_id}/update")
    async def update_item(request: Request, item_id: str):
        form = await request.form()
        section = str(form.get("section", ""))
        changes: Dict[str, Any] = {"recharge": _checkbox(form.get("recharge"))}
        for key in ("quantity", "comment", "description", "cost", "timeEstimate", "contractor"):
            if key in form:
                changes[key] = str(form[key])
        if "quantity" in changes:
            changes["quantity"] = str(max(parse_qty(changes["quantity"]), 0))
        session.edit_item(section, item_id, changes)
        return _redirect("/survey")

    @app.post("/survey/items/{item_id}/remove")
    async def remove_item(item_id: str, section: str = Form(...)):
        session.delete_item(section, item_id)
        return _redirect("/survey")

    @app.get("/survey/totals")
    def survey_totals():
        return session.totals().model_dump()

    @app.get("/survey/recharge")
    def survey_recharge():
        return [r.model_dump() for r in session.recharge_lines()]

    @app.get("/survey/export/xlsx")
    def export_xlsx():
        name, data = session.export_xlsx()
        return _download(name, data, "xlsx")

    @app.get("/survey/export/pdf")
    def export_pdf():
        name, data = session.export_pdf()
        return _download(name, data, "pdf")

    @app.get("/survey/export/bundle")
    def export_bundle(background_tasks: BackgroundTasks):
        name, data = session.export_bundle()
        # Runs after the download response is sent
        background_tasks.add_task(submit_and_log, session.submission_payload(), settings, submissions)
        log.info("bundle_exported", filename=name)
        return _download(name, data, "zip")

    @app.get("/survey/submissions")
    def submission_status():
        return submissions.status()

    @app.post("/survey/import")
    async def import_workbook(request: Request, workbook: UploadFile = File(...)):
        data = await workbook.read()
        try:
            report = session.import_xlsx(data)
        except SurveyImportError as e:
            if session.active:
                return _form_page(request, status_code=400, import_error=str(e))
            raise
        log.info("workbook_uploaded", filename=workbook.filename, matched=report.matched, appended=report.appended)
        return _redirect("/survey" if session.active else "/")

    return app


_settings = load_settings()
configure_logging(_settings)
app = create_app(_settings)
