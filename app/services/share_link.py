# app/services/share_link.py
from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Union
from urllib.parse import quote, unquote, urlsplit, urlunsplit

logger = logging.getLogger("atr.share")

# "%" doit toujours être suivi de deux chiffres hexadécimaux
_BAD_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")


class DecodeError(ValueError):
    """Jeton de partage illisible (percent-encoding ou base64 invalide)."""


def encode(text: str) -> str:
    """Texte du document -> jeton placé après le '#' de l'URL.

    Le texte est converti en UTF-8 avant base64 : tout texte Unicode
    fait l'aller-retour, pas seulement la plage Latin-1.
    """
    b64 = base64.b64encode(text.encode("utf-8")).decode("ascii")
    # '+', '/' et '=' sont échappés, comme encodeURIComponent côté navigateur
    return quote(b64, safe="")


def decode(token: str) -> str:
    """Inverse de encode(). Lève DecodeError si le jeton est invalide.

    Les octets qui ne forment pas de l'UTF-8 valide sont lus en Latin-1 :
    la plupart des liens produits par l'encodeur mono-octet du navigateur
    restent lisibles. Un texte Latin-1 dont les octets forment aussi de
    l'UTF-8 valide (ex. "Ã©") est lu comme de l'UTF-8 ("é").
    """
    if _BAD_PERCENT.search(token):
        raise DecodeError("percent-encoding invalide")
    try:
        b64 = unquote(token, errors="strict")
    except UnicodeDecodeError as e:
        raise DecodeError(f"percent-encoding invalide: {e}") from e
    try:
        raw = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"base64 invalide: {e}") from e
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def build_share_url(base_url: str, text: str) -> str:
    """Construit l'URL partageable : origine + chemin + '#' + jeton (query ignorée)."""
    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", "", encode(text)))


# ---------- Mode d'affichage de la page ----------

@dataclass(frozen=True)
class ViewMode:
    document: str


@dataclass(frozen=True)
class FormMode:
    pass


PageMode = Union[ViewMode, FormMode]


def resolve_page_mode(fragment: str | None) -> PageMode:
    """Choisit une fois pour toutes entre lecture seule et formulaire.

    Fragment vide -> formulaire. Fragment illisible -> formulaire aussi,
    l'erreur n'est que journalisée.
    """
    token = (fragment or "").strip()
    if token.startswith("#"):
        token = token[1:]
    if not token:
        return FormMode()
    try:
        return ViewMode(document=decode(token))
    except DecodeError as e:
        logger.warning("fragment de partage illisible (%s) — retour au formulaire", e)
        return FormMode()
