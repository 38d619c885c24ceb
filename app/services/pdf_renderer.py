# app/services/pdf_renderer.py

from pathlib import Path
from datetime import datetime
from jinja2 import Environment, FileSystemLoader, select_autoescape
import logging
import os
KEEP_HTML_DEBUG = os.getenv("ATR_KEEP_HTML_DEBUG", "0").lower() in {"1","true","yes"}

logger = logging.getLogger("atr.pdf")

APP_DIR = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = APP_DIR / "templates"
DEBUG_DIR = APP_DIR.parent / "var" / "debug"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_html(template_rel_path: str, context: dict) -> str:
    return _env.get_template(template_rel_path).render(**context)


def render_pdf_bytes(template_rel_path: str, context: dict) -> bytes:
    # Import tardif de WeasyPrint pour éviter de bloquer le démarrage si libs manquantes
    from weasyprint import HTML

    html_str = render_html(template_rel_path, context)

    # Debug optionnel : garder l'HTML rendu (désactivé par défaut)
    if KEEP_HTML_DEBUG:
        DEBUG_DIR.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        debug_path = DEBUG_DIR / f"document_{ts}.html"
        debug_path.write_text(html_str, encoding="utf-8")
        logger.debug("HTML conservé: %s", debug_path)

    # write_pdf() sans target retourne directement des bytes
    return HTML(string=html_str, base_url=str(TEMPLATES_DIR)).write_pdf()
