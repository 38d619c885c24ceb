# app/services/form_catalog.py
from pathlib import Path
from typing import List, Dict, Any
from functools import lru_cache
import logging
import yaml

logger = logging.getLogger("atr.catalog")

APP_DIR = Path(__file__).resolve().parents[1]  # .../app
ROOT = APP_DIR.parent                           # repo root
CATALOG = ROOT / "docs" / "autorisation_transport.yml"

def _mtime(p: Path) -> float:
    try:
        return p.stat().st_mtime
    except OSError:
        return 0.0

@lru_cache(maxsize=32)
def _load_yaml_cached(path_str: str, mtime: float) -> dict:
    p = Path(path_str)
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("catalogue illisible %s: %s", p, e)
        return {}
    return data if isinstance(data, dict) else {}

def load_catalog(path: Path = CATALOG) -> Dict[str, Any]:
    return _load_yaml_cached(str(path), _mtime(path))

def document_meta(path: Path = CATALOG) -> Dict[str, Any]:
    meta = load_catalog(path).get("meta") or {}
    return {
        "key": meta.get("key") or "autorisation_transport",
        "label": meta.get("label") or "Autorisation de Transport",
        "view_label": meta.get("view_label") or "Document Officiel",
        "description": meta.get("description") or "",
    }

def list_fields(path: Path = CATALOG) -> List[Dict[str, Any]]:
    out = []
    for f in load_catalog(path).get("fields") or []:
        if not isinstance(f, dict) or not f.get("key"):
            continue
        out.append({
            "key": f["key"],
            "label": f.get("label") or f["key"],
            "placeholder": f.get("placeholder") or "",
            "kind": f.get("kind") or "text",      # "text" | "date"
            "section": f.get("section") or "",
        })
    return out

def list_structure(path: Path = CATALOG) -> List[str]:
    return [str(s) for s in (load_catalog(path).get("structure") or []) if s]
