# app/schemas.py
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ATRBase(BaseModel):
    # tolère des clés non déclarées (champs de formulaire annexes)
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


# ---- Formulaire (entrée explicite de la validation et du prompt)
class TransportForm(_ATRBase):
    mayor_name: str
    commune_name: str
    postal_code: str
    auth_date: str
    company_name: str
    company_address: str
    crematorium_info: str
    habilitation_number: str
    place_of_issue: str
    issue_date: str
    delegate_name: str
    delegate_title: str
    signature: str


# ---- Dates
class DatesRequest(_ATRBase):
    auth_date: str = ""
    issue_date: str = ""

class DatesResponse(_ATRBase):
    valid: bool
    message: Optional[str] = None
    fields: List[str] = Field(default_factory=list)


# ---- Lien de partage
class ShareRequest(_ATRBase):
    # le texte du document n'est pas retaillé : l'aller-retour doit être exact
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=False)
    text: str
    base_url: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("texte vide")
        return v

class ShareResponse(_ATRBase):
    token: str
    url: str

class SharedDocument(BaseModel):
    text: str

class ShareToken(BaseModel):
    token: str
