import pytest


def _create(client, headers, name="Hrana", kind="expense", icon="🍔"):
    return client.post("/api/categories", json={"name": name, "icon": icon, "type": kind}, headers=headers)


def test_create_and_list_categories(client, auth_headers):
    created = _create(client, auth_headers)
    _create(client, auth_headers, "Plaća", "income", "💶")

    assert created.status_code == 201
    assert created.json()["name"] == "Hrana"
    assert created.json()["user_id"] == auth_headers["X-User-Id"]

    everything = client.get("/api/categories", headers=auth_headers).json()
    assert [c["name"] for c in everything] == ["Hrana", "Plaća"]

    income = client.get("/api/categories", params={"type": "income"}, headers=auth_headers).json()
    assert [c["name"] for c in income] == ["Plaća"]


def test_categories_are_scoped_to_the_caller(client, auth_headers):
    _create(client, auth_headers)

    others = client.get("/api/categories", headers={"X-User-Id": "user_other"}).json()

    assert others == []


def test_duplicate_category_conflicts(client, auth_headers):
    _create(client, auth_headers)

    response = _create(client, auth_headers, icon="🍕")

    assert response.status_code == 409


def test_same_name_allowed_for_other_type(client, auth_headers):
    _create(client, auth_headers, "Ostalo", "expense")

    response = _create(client, auth_headers, "Ostalo", "income")

    assert response.status_code == 201


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Ab", "icon": "🍔", "type": "expense"},
        {"name": "A" * 21, "icon": "🍔", "type": "expense"},
        {"name": "Hrana", "icon": "🍔", "type": "savings"},
        {"name": "Hrana", "type": "expense"},
    ],
)
def test_create_category_validation(client, auth_headers, payload):
    response = client.post("/api/categories", json=payload, headers=auth_headers)

    assert response.status_code == 422


def test_update_category(client, auth_headers):
    category = _create(client, auth_headers).json()

    response = client.put(
        f"/api/categories/{category['id']}",
        json={"name": "Namirnice", "icon": "🛒", "type": "expense", "description": "Dućan"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Namirnice"
    assert response.json()["description"] == "Dućan"


def test_update_category_type_with_transactions_conflicts(client, auth_headers):
    category = _create(client, auth_headers).json()
    client.post(
        "/api/transactions",
        json={"amount": 10, "date": "2025-10-01", "type": "expense", "category_id": category["id"]},
        headers=auth_headers,
    )

    response = client.put(
        f"/api/categories/{category['id']}",
        json={"name": "Hrana", "icon": "🍔", "type": "income"},
        headers=auth_headers,
    )

    assert response.status_code == 409


def test_delete_category(client, auth_headers):
    category = _create(client, auth_headers).json()

    response = client.delete(f"/api/categories/{category['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert client.get("/api/categories", headers=auth_headers).json() == []


def test_delete_category_with_transactions_conflicts(client, auth_headers):
    category = _create(client, auth_headers).json()
    client.post(
        "/api/transactions",
        json={"amount": 10, "date": "2025-10-01", "type": "expense", "category_id": category["id"]},
        headers=auth_headers,
    )

    response = client.delete(f"/api/categories/{category['id']}", headers=auth_headers)

    assert response.status_code == 409


def test_missing_category(client, auth_headers):
    update = client.put(
        "/api/categories/missing",
        json={"name": "Hrana", "icon": "🍔", "type": "expense"},
        headers=auth_headers,
    )
    delete = client.delete("/api/categories/missing", headers=auth_headers)

    assert update.status_code == 404
    assert delete.status_code == 404


def test_category_of_another_user_is_not_found(client, auth_headers):
    category = _create(client, auth_headers).json()

    response = client.delete(f"/api/categories/{category['id']}", headers={"X-User-Id": "user_other"})

    assert response.status_code == 404
