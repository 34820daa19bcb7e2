from decimal import Decimal

API = "/api/v1"

NEW_BOOK = {
    "title": "The Left Hand of Darkness",
    "author": "Ursula K. Le Guin",
    "price": 12.5,
    "category": "Sci-Fi",
    "description": "A classic",
    "stock": 3,
}


def test_list_books_envelope(client, book_factory):
    book_factory(title="Dune")
    r = client.get(f"{API}/books")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    book = body["data"]["books"][0]
    assert book["title"] == "Dune"
    assert book["averageRating"] == 0
    assert book["reviewCount"] == 0
    assert body["data"]["pagination"] == {
        "currentPage": 1,
        "totalPages": 1,
        "totalBooks": 1,
        "limit": 12,
        "hasNextPage": False,
        "hasPrevPage": False,
    }


def test_list_books_query_parameters(client, book_factory):
    book_factory(title="A", price=Decimal("15.00"))
    book_factory(title="B", price=Decimal("5.00"))
    book_factory(title="C", price=Decimal("10.00"))

    r = client.get(f"{API}/books", params={"sortBy": "price_asc", "limit": 2})
    data = r.json()["data"]
    assert [b["title"] for b in data["books"]] == ["B", "C"]
    assert data["pagination"]["totalPages"] == 2
    assert data["pagination"]["hasNextPage"] is True

    r = client.get(f"{API}/books", params={"minPrice": "6", "maxPrice": "12"})
    assert [b["title"] for b in r.json()["data"]["books"]] == ["C"]


def test_invalid_sort_is_rejected(client):
    r = client.get(f"{API}/books", params={"sortBy": "cheapest"})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "INVALID_PARAMETERS"
    assert error["details"][0]["field"] == "sortBy"


def test_limit_is_capped(client):
    r = client.get(f"{API}/books", params={"limit": 101})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_PARAMETERS"


def test_min_price_above_max_price(client):
    r = client.get(f"{API}/books", params={"minPrice": "20", "maxPrice": "10"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_PARAMETERS"


def test_get_book(client, book_factory):
    book = book_factory(title="Dune", price=Decimal("9.99"))
    r = client.get(f"{API}/books/{book.id}")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["id"] == book.id
    assert float(data["price"]) == 9.99


def test_get_missing_book(client):
    r = client.get(f"{API}/books/9999")
    assert r.status_code == 404
    assert r.json()["error"] == {"code": "BOOK_NOT_FOUND", "message": "Book with ID 9999 not found"}


def test_book_id_must_be_positive(client):
    r = client.get(f"{API}/books/0")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_BOOK_ID"
    assert r.json()["error"]["message"] == "Book ID must be a positive integer"

    assert client.get(f"{API}/books/abc").json()["error"]["code"] == "INVALID_BOOK_ID"
    assert client.get(f"{API}/books/-3/related").json()["error"]["code"] == "INVALID_BOOK_ID"


def test_categories_and_related(client, book_factory):
    dune = book_factory(title="Dune", category="Sci-Fi")
    book_factory(title="Foundation", category="Sci-Fi")
    book_factory(title="Emma", category="Classics")

    r = client.get(f"{API}/books/categories")
    assert r.status_code == 200
    assert r.json()["data"] == {
        "categories": [{"category": "Classics", "count": 1}, {"category": "Sci-Fi", "count": 2}],
        "count": 2,
    }

    r = client.get(f"{API}/books/{dune.id}/related")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["count"] == 1
    assert data["books"][0]["title"] == "Foundation"

    assert client.get(f"{API}/books/9999/related").status_code == 404


def test_admin_manages_books(as_admin):
    r = as_admin.post(f"{API}/books", json=NEW_BOOK)
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["title"] == NEW_BOOK["title"]
    assert float(created["price"]) == 12.5
    assert created["reviewCount"] == 0

    r = as_admin.put(f"{API}/books/{created['id']}", json={"stock": 0, "price": 10})
    assert r.status_code == 200
    updated = r.json()["data"]
    assert updated["stock"] == 0
    assert float(updated["price"]) == 10
    assert updated["title"] == NEW_BOOK["title"]

    r = as_admin.delete(f"{API}/books/{created['id']}")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Book deleted successfully"}
    assert as_admin.get(f"{API}/books/{created['id']}").status_code == 404
    assert as_admin.delete(f"{API}/books/{created['id']}").status_code == 404


def test_admin_book_validation(as_admin, book_factory):
    r = as_admin.post(f"{API}/books", json=dict(NEW_BOOK, price=-1))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = as_admin.post(f"{API}/books", json=dict(NEW_BOOK, image_url="ftp://nope"))
    assert r.status_code == 400

    book = book_factory()
    r = as_admin.put(f"{API}/books/{book.id}", json={"title": None})
    assert r.status_code == 400

    r = as_admin.put(f"{API}/books/9999", json={"stock": 1})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "BOOK_NOT_FOUND"


def test_books_writes_require_admin(client, register_user, book_factory):
    r = client.post(f"{API}/books", json=NEW_BOOK)
    assert r.status_code == 401

    register_user()
    r = client.post(f"{API}/books", json=NEW_BOOK)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"

    book = book_factory()
    assert client.delete(f"{API}/books/{book.id}").status_code == 403


def test_unknown_route(client):
    r = client.get(f"{API}/nothing-here")
    assert r.status_code == 404
    assert r.json()["error"] == {"code": "NOT_FOUND", "message": "Cannot GET /api/v1/nothing-here"}


def test_method_not_allowed(client):
    r = client.patch(f"{API}/books")
    assert r.status_code == 405
    assert r.json()["error"]["code"] == "METHOD_NOT_ALLOWED"
