# app/main.py

# Standard library
from pathlib import Path
from datetime import datetime
from functools import lru_cache
from typing import Optional, Dict, Any, Iterable
from io import BytesIO
import logging
import os

# Third-party
from fastapi import FastAPI, Request, Form
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

# Local modules
from app.schemas import (
    TransportForm, DatesRequest, DatesResponse, ShareRequest, ShareResponse, ShareToken, SharedDocument
)
from app.services.date_validator import Invalid, validate_dates
from app.services.form_catalog import document_meta, list_fields
from app.services.generation_client import GenerationClient, GenerationClientError
from app.services.pdf_renderer import render_pdf_bytes
from app.services.prompt_builder import build_prompt
from app.services.share_link import (
    DecodeError, ViewMode, build_share_url, decode, encode, resolve_page_mode
)

# --- logger ---
logger = logging.getLogger("atr")
if not logger.handlers:
    logging.basicConfig(
        level=os.getenv("ATR_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

# --- chemins sûrs (absolus) ---
APP_DIR = Path(__file__).resolve().parent                 # .../app
UI_TEMPLATES_DIR = APP_DIR / "templates" / "ui"           # .../app/templates/ui
STATIC_DIR = APP_DIR / "static"

# --- app FastAPI ---
app = FastAPI(title="Autorisation de Transport", version="0.1")

# --- statiques ---
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# --- moteur de templates ---
templates = Jinja2Templates(directory=str(UI_TEMPLATES_DIR))

GENERATION_FAILED_MSG = (
    "Une erreur est survenue lors de la génération du document. Veuillez réessayer plus tard."
)
SHARE_FAILED_MSG = "Erreur lors de la création du lien de partage."


# ========== Collaborateur de génération ==========

@lru_cache(maxsize=1)
def get_generation_client() -> GenerationClient:
    return GenerationClient()


def generate_document(prompt: str) -> str:
    """Appel bloquant à l'API de génération (exécuté hors boucle d'événements)."""
    return get_generation_client().generate(prompt)


# ========== Helpers ==========

def _share_base(request: Request) -> str:
    return str(request.url_for("index"))


def _render_form(
    request: Request,
    values: Optional[Dict[str, Any]] = None,
    *,
    error: Optional[str] = None,
    invalid: Iterable[str] = (),
    result: Optional[str] = None,
    status_code: int = 200,
):
    share_url = build_share_url(_share_base(request), result) if result else None
    return templates.TemplateResponse(
        request,
        "index.html.j2",
        {
            "doc": document_meta(),
            "fields": list_fields(),
            "values": values or {},
            "error": error,
            "invalid": set(invalid),
            "result": result,
            "share_url": share_url,
        },
        status_code=status_code,
    )


# ========== Routes UI ==========

@app.get("/", response_class=HTMLResponse, name="index")
async def index(request: Request):
    return _render_form(request)


@app.get("/view", response_class=HTMLResponse, name="view")
async def view_document(request: Request, d: Optional[str] = None):
    mode = resolve_page_mode(d)
    if isinstance(mode, ViewMode):
        return templates.TemplateResponse(
            request, "view.html.j2", {"doc": document_meta(), "text": mode.document}
        )
    return _render_form(request)


@app.post("/generate", response_class=HTMLResponse)
async def generate(
    request: Request,
    # champ vide accepté : la validation des dates produit le message en français
    mayor_name: str = Form(""),
    commune_name: str = Form(""),
    postal_code: str = Form(""),
    auth_date: str = Form(""),
    company_name: str = Form(""),
    company_address: str = Form(""),
    crematorium_info: str = Form(""),
    habilitation_number: str = Form(""),
    place_of_issue: str = Form(""),
    issue_date: str = Form(""),
    delegate_name: str = Form(""),
    delegate_title: str = Form(""),
    signature: str = Form(""),
):
    form = TransportForm(
        mayor_name=mayor_name,
        commune_name=commune_name,
        postal_code=postal_code,
        auth_date=auth_date,
        company_name=company_name,
        company_address=company_address,
        crematorium_info=crematorium_info,
        habilitation_number=habilitation_number,
        place_of_issue=place_of_issue,
        issue_date=issue_date,
        delegate_name=delegate_name,
        delegate_title=delegate_title,
        signature=signature,
    )
    values = form.model_dump()

    # 1) Dates (une seule erreur à la fois)
    check = validate_dates(form.auth_date, form.issue_date)
    if isinstance(check, Invalid):
        return _render_form(request, values, error=check.reason, invalid=check.fields, status_code=422)

    # 2) Prompt + génération
    prompt = build_prompt(values)
    try:
        text = await run_in_threadpool(generate_document, prompt)
    except (GenerationClientError, OSError) as e:
        logger.exception("génération échouée: %s", e)
        return _render_form(request, values, error=GENERATION_FAILED_MSG, status_code=502)

    logger.info("document généré (%d car.) pour la commune %s", len(text), form.commune_name)
    return _render_form(request, values, result=text)


@app.post("/document/pdf")
async def document_pdf(text: str = Form(...)):
    context = {
        "title": document_meta()["label"],
        "text": text,
        "generated_at": datetime.now().strftime("%d/%m/%Y %H:%M"),
    }
    try:
        pdf_bytes = await run_in_threadpool(render_pdf_bytes, "pdf/document.html.j2", context)
    except Exception as e:
        # WeasyPrint peut échouer à l'import (libs système) comme au rendu
        logger.exception("rendu PDF échoué: %s", e)
        return JSONResponse({"error": "pdf_failed", "detail": str(e)}, status_code=500)
    headers = {"Content-Disposition": 'inline; filename="autorisation_transport.pdf"'}
    return StreamingResponse(BytesIO(pdf_bytes), media_type="application/pdf", headers=headers)


# ========== API ==========

@app.post("/api/dates/validate", response_model=DatesResponse)
async def api_validate_dates(payload: DatesRequest):
    check = validate_dates(payload.auth_date, payload.issue_date)
    if isinstance(check, Invalid):
        return DatesResponse(valid=False, message=check.reason, fields=sorted(check.fields))
    return DatesResponse(valid=True)


@app.post("/api/share", response_model=ShareResponse)
async def api_share(request: Request):
    try:
        payload = ShareRequest.model_validate(await request.json())
    except ValueError as e:
        logger.warning("création de lien refusée: %s", e)
        return JSONResponse({"error": "share_failed", "detail": SHARE_FAILED_MSG}, status_code=400)
    base = payload.base_url or _share_base(request)
    return ShareResponse(token=encode(payload.text), url=build_share_url(base, payload.text))


@app.post("/api/share/decode", response_model=SharedDocument)
async def api_share_decode(payload: ShareToken):
    try:
        return SharedDocument(text=decode(payload.token))
    except DecodeError as e:
        logger.warning("jeton de partage illisible: %s", e)
        return JSONResponse({"error": "decode_failed"}, status_code=400)


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "generation_configured": get_generation_client().is_configured()}
