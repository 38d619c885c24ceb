# app/services/prompt_builder.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from app.services.form_catalog import list_structure

APP_DIR = Path(__file__).resolve().parents[1]
PROMPTS_DIR = APP_DIR / "templates" / "prompts"
PROMPT_TEMPLATE = "autorisation_transport.txt.j2"

_env = Environment(
    loader=FileSystemLoader(str(PROMPTS_DIR)),
    undefined=StrictUndefined,   # un champ manquant est une erreur, pas une ligne vide
    autoescape=False,
    keep_trailing_newline=True,
)


def build_prompt(data: Dict[str, Any], structure: Optional[List[str]] = None) -> str:
    """Rend le prompt d'« AUTORISATION DE TRANSPORT » à partir des champs du formulaire."""
    tpl = _env.get_template(PROMPT_TEMPLATE)
    return tpl.render(**data, structure=structure if structure is not None else list_structure())
