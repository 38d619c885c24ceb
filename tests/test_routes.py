import re

from markupsafe import escape

from app import main
from app.services.date_validator import MSG_AUTH_FORMAT, MSG_ISSUE_FORMAT
from app.services.generation_client import GenerationClientError
from app.services.share_link import encode

GENERATED = "AUTORISATION DE TRANSPORT\n\nLe Maire de la commune de Villeneuve-sur-Lot"


def _invalid_inputs(html):
    return set(re.findall(r'<input id="(\w+)"[^>]*class="invalid"', html))


def test_index_renders_form(client):
    r = client.get("/")
    assert r.status_code == 200
    assert 'id="doc-form"' in r.text
    for key in ("mayor_name", "auth_date", "issue_date", "signature"):
        assert f'name="{key}"' in r.text
    assert _invalid_inputs(r.text) == set()


def test_view_mode_shows_document(client):
    r = client.get("/view", params={"d": encode("Document partagé")})
    assert r.status_code == 200
    assert "Document partagé" in r.text
    assert "Document Officiel" in r.text
    assert 'id="copy-btn"' in r.text
    assert 'id="doc-form"' not in r.text


def test_view_mode_falls_back_to_form(client):
    r = client.get("/view", params={"d": "%not-valid-base64%"})
    assert r.status_code == 200
    assert 'id="doc-form"' in r.text
    r = client.get("/view")
    assert 'id="doc-form"' in r.text


def test_generate_rejects_issue_before_auth(client, form_values, monkeypatch):
    calls = []
    monkeypatch.setattr(main, "generate_document", calls.append)
    form_values.update(auth_date="31/01/2024", issue_date="05/01/2024")
    r = client.post("/generate", data=form_values)
    assert r.status_code == 422
    assert "ne peut pas être antérieure" in r.text
    assert _invalid_inputs(r.text) == {"auth_date", "issue_date"}
    # les valeurs saisies sont conservées
    assert 'value="31/01/2024"' in r.text
    assert calls == []


def test_generate_empty_auth_date_shows_french_message(client, form_values, monkeypatch):
    calls = []
    monkeypatch.setattr(main, "generate_document", calls.append)
    form_values["auth_date"] = ""
    r = client.post("/generate", data=form_values)
    assert r.status_code == 422
    assert r.headers["content-type"].startswith("text/html")
    assert str(escape(MSG_AUTH_FORMAT)) in r.text
    assert _invalid_inputs(r.text) == {"auth_date"}
    assert calls == []


def test_generate_missing_issue_date_field(client, form_values):
    del form_values["issue_date"]
    r = client.post("/generate", data=form_values)
    assert r.status_code == 422
    assert str(escape(MSG_ISSUE_FORMAT)) in r.text
    assert _invalid_inputs(r.text) == {"issue_date"}


def test_generate_rejects_bad_auth_date(client, form_values):
    form_values.update(auth_date="31/02/2024", issue_date="01/03/2024")
    r = client.post("/generate", data=form_values)
    assert r.status_code == 422
    assert "est invalide. Utilisez JJ/MM/AAAA." in r.text
    assert _invalid_inputs(r.text) == {"auth_date"}


def test_generate_success(client, form_values, monkeypatch):
    prompts = []

    def fake_generate(prompt):
        prompts.append(prompt)
        return GENERATED

    monkeypatch.setattr(main, "generate_document", fake_generate)
    r = client.post("/generate", data=form_values)
    assert r.status_code == 200
    assert "Le Maire de la commune de Villeneuve-sur-Lot" in r.text
    assert f'value="http://testserver/#{encode(GENERATED)}"' in r.text
    assert 'id="publish-btn"' in r.text
    assert len(prompts) == 1 and "Villeneuve-sur-Lot (47300)" in prompts[0]


def test_generate_failure_shows_message(client, form_values, monkeypatch):
    def boom(prompt):
        raise GenerationClientError("generateContent 503: indisponible")

    monkeypatch.setattr(main, "generate_document", boom)
    r = client.post("/generate", data=form_values)
    assert r.status_code == 502
    assert "Une erreur est survenue lors de la génération du document." in r.text
    assert 'id="publish-btn"' not in r.text


def test_generate_without_api_key(client, form_values):
    # pas de clé configurée : erreur d'authentification convertie en message
    r = client.post("/generate", data=form_values)
    assert r.status_code == 502


def test_api_validate_dates(client):
    r = client.post("/api/dates/validate", json={"auth_date": "01/01/2024", "issue_date": "02/01/2024"})
    assert r.json() == {"valid": True, "message": None, "fields": []}
    r = client.post("/api/dates/validate", json={"auth_date": "31/01/2024", "issue_date": "05/01/2024"})
    body = r.json()
    assert body["valid"] is False
    assert body["fields"] == ["auth_date", "issue_date"]


def test_api_share_roundtrip(client):
    text = "Pour le Maire et par délégation,\n  P. Martin"
    r = client.post("/api/share", json={"text": text, "base_url": "https://mairie.example/outil"})
    assert r.status_code == 200
    body = r.json()
    assert body["url"] == f"https://mairie.example/outil#{body['token']}"
    r = client.post("/api/share/decode", json={"token": body["token"]})
    assert r.json() == {"text": text}


def test_api_share_defaults_to_app_url(client):
    r = client.post("/api/share", json={"text": "Hello"})
    assert r.json()["url"] == "http://testserver/#SGVsbG8%3D"


def test_api_share_rejects_empty_text(client):
    r = client.post("/api/share", json={"text": "   "})
    assert r.status_code == 400
    assert r.json()["detail"] == "Erreur lors de la création du lien de partage."


def test_api_share_decode_error(client):
    r = client.post("/api/share/decode", json={"token": "%not-valid-base64%"})
    assert r.status_code == 400
    assert r.json() == {"error": "decode_failed"}


def test_document_pdf(client, monkeypatch):
    seen = {}

    def fake_render(tpl, context):
        seen.update(context, tpl=tpl)
        return b"%PDF-1.7 fake"

    monkeypatch.setattr(main, "render_pdf_bytes", fake_render)
    r = client.post("/document/pdf", data={"text": GENERATED})
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content == b"%PDF-1.7 fake"
    assert seen["tpl"] == "pdf/document.html.j2"
    assert seen["text"] == GENERATED


def test_document_pdf_failure(client, monkeypatch):
    def broken(tpl, context):
        raise OSError("cairo introuvable")

    monkeypatch.setattr(main, "render_pdf_bytes", broken)
    r = client.post("/document/pdf", data={"text": GENERATED})
    assert r.status_code == 500
    assert r.json()["error"] == "pdf_failed"


def test_healthz(client, monkeypatch):
    assert client.get("/healthz").json() == {"status": "ok", "generation_configured": False}
    monkeypatch.setenv("GEMINI_API_KEY", "clef")
    main.get_generation_client.cache_clear()
    assert client.get("/healthz").json()["generation_configured"] is True
