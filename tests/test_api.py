import httpx
import pytest
from fastapi.testclient import TestClient

from bookresolver.config import Settings
from bookresolver.main import create_app
from bookresolver.services import wire_services
from tests.fakes import (
    CENTRAL_HOST, CENTRAL_URL, GOOGLE_HOST, LONG_DESCRIPTION, OPEN_LIBRARY_HOST, volume, volumes,
)

ISBN = "9780143127741"
VOLUMES_PATH = "/books/v1/volumes"


@pytest.fixture
def client(upstream, store):
    settings = Settings(google_api_key="k", central_service_url=CENTRAL_URL, open_library_fallback=False)
    services = wire_services(settings, upstream.client(), store)
    with TestClient(create_app(services)) as test_client:
        yield test_client


def test_root(client):
    assert client.get("/").json() == {"message": "Book resolution API is running!"}


def test_genres(client):
    body = client.get("/genres").json()

    assert body["success"] is True
    assert {"id": "romance", "label": "Romance"} in body["genres"]


def test_health_reports_missing_redis(client):
    response = client.get("/health")

    assert response.status_code == 503
    services = {s["name"]: s for s in response.json()["services"]}
    assert services["redis"]["status"] == "error"


def test_book_by_isbn_uses_camel_case(client, upstream):
    upstream.add(CENTRAL_HOST, "/lookupBook", httpx.Response(200, json={"success": True, "book": {
        "isbn": ISBN, "title": "The Overstory", "coverImageUrl": "https://c", "description": "Trees.",
        "pageCount": 502,
    }}))

    response = client.get("/book/isbn/978-0143127741")

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "The Overstory"
    assert body["pageCount"] == 502
    assert body["sourceOrigin"] == "centralService"


def test_book_by_isbn_rejects_text(client):
    assert client.get("/book/isbn/not-an-isbn").status_code == 400


def test_book_by_isbn_not_found(client):
    response = client.get(f"/book/isbn/{ISBN}")

    assert response.status_code == 404


def test_search(client, upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, volumes(volume("Bewilderment"), volume("Orfeo")))

    body = client.get("/search", params={"q": "richard powers", "limit": 5}).json()

    assert body["num_found"] == 2
    assert body["source"] == "catalogA"
    assert [r["title"] for r in body["results"]] == ["Bewilderment", "Orfeo"]


def test_discover_uses_central_answer(client, upstream):
    upstream.add(CENTRAL_HOST, "/discoverBooks", httpx.Response(200, json={
        "success": True, "books": [{"isbn": "1", "title": "Beach Read"}, {"isbn": "2", "title": "Book Lovers"}],
    }))

    body = client.get("/discover", params={"genre": "romance", "exclude": ["2"]}).json()

    assert body["genre"] == "romance"
    assert [r["title"] for r in body["results"]] == ["Beach Read"]


def test_lookup_book_endpoint(client, upstream):
    upstream.add(OPEN_LIBRARY_HOST, f"/isbn/{ISBN}.json", httpx.Response(200, json={"title": "The Overstory"}))

    response = client.post("/lookupBook", json={"isbn": ISBN})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["source"] == "catalogB"
    assert body["book"]["isbn13"] == ISBN


def test_lookup_book_not_found(client):
    response = client.post("/lookupBook", json={"isbn": ISBN})

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "not-found"}


def test_lookup_book_requires_an_isbn(client):
    response = client.post("/lookupBook", json={"isbn": "the overstory"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid-argument"


def test_discover_books_endpoint(client, upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, volumes(volume(
        "Beach Read", isbn13="9780000000011", thumbnail="https://c", description=LONG_DESCRIPTION,
        categories=["Fiction / Romance"],
    )))

    body = client.post("/discoverBooks", json={"genre": "romance", "limit": 5}).json()

    assert body["success"] is True
    assert body["genre"] == "romance"
    assert body["totalFound"] == 1
    assert body["books"][0]["coverImageUrl"] == "https://c"


def test_discover_books_rejects_unknown_genre(client):
    response = client.post("/discoverBooks", json={"genre": "poetry"})

    assert response.status_code == 400
    assert response.json()["success"] is False
