import pytest
from fastapi.testclient import TestClient

from app import main


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch) -> None:
    # aucun appel réseau réel : pas de clé, client recréé à chaque test
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    main.get_generation_client.cache_clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(main.app)


@pytest.fixture
def form_values() -> dict:
    return {
        "mayor_name": "Jean Dupont",
        "commune_name": "Villeneuve-sur-Lot",
        "postal_code": "47300",
        "auth_date": "02/01/2024",
        "company_name": "Pompes Funèbres du Lot",
        "company_address": "12 rue de la République",
        "crematorium_info": "de Montauban",
        "habilitation_number": "24-47-0123",
        "place_of_issue": "Agen",
        "issue_date": "05/01/2024",
        "delegate_name": "Paul Martin",
        "delegate_title": "Adjoint au Maire",
        "signature": "P. Martin",
    }
