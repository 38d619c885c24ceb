# app/services/generation_client.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("atr.generation")

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta"


class GenerationClientError(RuntimeError):
    pass


class GenerationAuthError(GenerationClientError):
    pass


def _env(name: str) -> Optional[str]:
    v = os.getenv(name)
    if v is None or str(v).strip() == "":
        return None
    return v


@dataclass
class GenerationSettings:
    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    base_api: str = DEFAULT_API_URL
    timeout: float = 60.0


def load_generation_settings() -> GenerationSettings:
    """Charge la configuration depuis les variables d'environnement.

    Variables supportées:
      - GEMINI_API_KEY (ou API_KEY)
      - ATR_GEN_MODEL    (défaut gemini-2.5-flash)
      - ATR_GEN_API_URL  (défaut https://generativelanguage.googleapis.com/v1beta)
      - ATR_GEN_TIMEOUT  (secondes, défaut 60)
    """
    timeout = _env("ATR_GEN_TIMEOUT")
    return GenerationSettings(
        api_key=_env("GEMINI_API_KEY") or _env("API_KEY"),
        model=_env("ATR_GEN_MODEL") or DEFAULT_MODEL,
        base_api=_env("ATR_GEN_API_URL") or DEFAULT_API_URL,
        timeout=float(timeout) if timeout else 60.0,
    )


class GenerationClient:
    """Client minimal pour l'API Generative Language (generateContent).

    - Un prompt texte en entrée, un texte en sortie
    - Clé API passée en en-tête (x-goog-api-key)
    - Retries prudents (429/5xx)
    - ATR_GEN_DEBUG=1 pour tracer requêtes/réponses
    """

    def __init__(self, settings: Optional[GenerationSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or load_generation_settings()
        self._session = session or requests.Session()
        self._install_retries()
        self._debug: bool = str(os.getenv("ATR_GEN_DEBUG", "")).lower() in {"1", "true", "yes"}

    # ---------- infra ----------
    def _install_retries(self, total: int = 2, backoff: float = 0.5) -> None:
        retry = Retry(
            total=total,
            backoff_factor=backoff,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "POST"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def _log(self, msg: str, *args: Any) -> None:
        if self._debug:
            logger.debug(msg, *args)

    def is_configured(self) -> bool:
        return bool(self.settings.api_key)

    def _headers(self) -> Dict[str, str]:
        if not self.settings.api_key:
            raise GenerationAuthError("Clé API manquante (variable GEMINI_API_KEY)")
        return {
            "x-goog-api-key": self.settings.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self.settings.base_api.rstrip('/')}/{path.lstrip('/')}"

    # ---------- API ----------
    @staticmethod
    def extract_text(payload: Dict[str, Any]) -> str:
        """Concatène les parts texte du premier candidat."""
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback") or {}
            reason = feedback.get("blockReason") or "aucun candidat"
            raise GenerationClientError(f"Réponse sans texte ({reason})")
        parts = ((candidates[0].get("content") or {}).get("parts")) or []
        text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))
        if not text.strip():
            raise GenerationClientError("Réponse sans texte (parts vides)")
        return text

    def generate(self, prompt: str) -> str:
        """Envoie un prompt unique, renvoie le texte généré."""
        url = self._url(f"models/{self.settings.model}:generateContent")
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        self._log("POST %s (prompt=%d car.)", url, len(prompt))
        resp = self._session.post(url, headers=self._headers(), json=body, timeout=self.settings.timeout)
        self._log("-> status=%s len=%s", resp.status_code, resp.headers.get("content-length", "?"))
        if resp.status_code in (401, 403):
            raise GenerationAuthError(f"generateContent {resp.status_code}: {resp.text[:200]}")
        if resp.status_code != 200:
            raise GenerationClientError(f"generateContent {resp.status_code}: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise GenerationClientError(f"Réponse JSON invalide: {e}") from e
        return self.extract_text(payload)

    def ping(self) -> bool:
        """True si le modèle configuré est consultable (GET models/{model})."""
        if not self.is_configured():
            return False
        try:
            resp = self._session.get(
                self._url(f"models/{self.settings.model}"),
                headers=self._headers(),
                timeout=15,
            )
            return resp.status_code == 200
        except requests.RequestException:
            return False
