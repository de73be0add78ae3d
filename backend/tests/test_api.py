import uuid
from fastapi import APIRouter, Depends
from fastapi.testclient import TestClient
from storefront.api.dependencies import require_admin, require_owner
from storefront.core.errors import InfrastructureError
from storefront.models.user import User
from storefront.services.product_service import product_service
from conftest import login, make_product, make_user

NEW_PRODUCT = {
    "name": "Teapot",
    "description": "Cast iron teapot",
    "price": "34.90",
    "photo_url": "https://img.example.com/teapot.png",
}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_signup_login_me_flow(client):
    response = client.post("/users/signup", json={
        "username": "ana", "password": "Secret1!", "email": "ana@x.com",
    })
    assert response.status_code == 201
    created = response.json()
    assert "password" not in created
    assert created["username"] == "ana"
    assert created["is_admin"] is False

    response = client.post("/auth/login", json={"username": "ana", "password": "Secret1!"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"

    response = client.get(
        "/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert response.status_code == 200
    assert response.json() == {"user_id": created["id"], "username": "ana"}

    response = client.get("/auth/me")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_signup_requires_username_password_and_email(client):
    response = client.post("/users/signup", json={"username": "ana", "password": "Secret1!"})
    assert response.status_code == 400


def test_signup_ignores_admin_flag_in_body(client):
    response = client.post("/users/signup", json={
        "username": "ana", "password": "Secret1!", "email": "ana@x.com", "is_admin": True,
    })
    assert response.status_code == 201
    assert response.json()["is_admin"] is False


def test_duplicate_signup_returns_409(client):
    payload = {"username": "ana", "password": "Secret1!", "email": "ana@x.com"}
    assert client.post("/users/signup", json=payload).status_code == 201
    assert client.post("/users/signup", json=payload).status_code == 409


def test_login_with_wrong_password_returns_401(client, app_db):
    make_user(app_db)
    response = client.post("/auth/login", json={"username": "ana", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Incorrect username or password"}


def test_invalid_token_returns_401(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert response.status_code == 401


def test_token_of_deleted_user_is_rejected(client, app_db):
    user_id = make_user(app_db).id
    headers = login(client)
    assert client.delete(f"/users/{user_id}", headers=headers).status_code == 204
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_non_admin_cannot_create_product(client, app_db):
    make_user(app_db)
    response = client.post("/products/create", json=NEW_PRODUCT, headers=login(client))
    assert response.status_code == 403


def test_admin_creates_product(client, app_db):
    make_user(app_db, username="root", is_admin=True)
    response = client.post(
        "/products/create", json=NEW_PRODUCT, headers=login(client, "root"))
    assert response.status_code == 201
    product = response.json()
    for field, value in NEW_PRODUCT.items():
        if field == "price":
            assert float(product["price"]) == float(value)
        else:
            assert product[field] == value

    listed = client.get("/products").json()
    assert [item["id"] for item in listed] == [product["id"]]


def test_create_product_without_token_returns_401(client):
    assert client.post("/products/create", json=NEW_PRODUCT).status_code == 401


def test_create_product_with_missing_field_returns_400(client, app_db):
    make_user(app_db, username="root", is_admin=True)
    payload = {key: value for key, value in NEW_PRODUCT.items() if key != "photo_url"}
    response = client.post("/products/create", json=payload, headers=login(client, "root"))
    assert response.status_code == 400


def test_negative_price_returns_400(client, app_db):
    make_user(app_db, username="root", is_admin=True)
    payload = dict(NEW_PRODUCT, price="-1.00")
    response = client.post("/products/create", json=payload, headers=login(client, "root"))
    assert response.status_code == 400


def test_role_change_applies_without_new_token(client, app_db):
    user_id = make_user(app_db).id
    headers = login(client)
    assert client.get("/users", headers=headers).status_code == 403

    app_db.get(User, user_id).is_admin = True
    app_db.commit()

    response = client.get("/users", headers=headers)
    assert response.status_code == 200
    assert all("password" not in user for user in response.json())


def test_get_product_not_found(client):
    response = client.get(f"/products/{uuid.uuid4()}")
    assert response.status_code == 404


def test_bad_identifier_returns_400(client):
    assert client.get("/products/not-a-uuid").status_code == 400


def test_patch_user_changes_only_sent_fields(client, app_db):
    user_id = make_user(app_db, address="1 Main St", phone_number="555-0100").id
    headers = login(client)

    response = client.patch(
        f"/users/{user_id}", json={"email": "ana@new.com"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "ana@new.com"
    assert body["address"] == "1 Main St"
    assert body["phone_number"] == "555-0100"
    assert "password" not in body


def test_patch_user_with_empty_body_returns_400(client, app_db):
    user_id = make_user(app_db).id
    response = client.patch(f"/users/{user_id}", json={}, headers=login(client))
    assert response.status_code == 400


def test_patch_user_with_null_returns_400(client, app_db):
    user_id = make_user(app_db).id
    response = client.patch(f"/users/{user_id}", json={"address": None}, headers=login(client))
    assert response.status_code == 400


def test_patch_user_cannot_grant_admin(client, app_db):
    user_id = make_user(app_db).id
    response = client.patch(f"/users/{user_id}", json={"is_admin": True}, headers=login(client))
    assert response.status_code == 400


def test_patch_password_then_login_with_new_one(client, app_db):
    user_id = make_user(app_db).id
    response = client.patch(
        f"/users/{user_id}", json={"password": "N3wPass!"}, headers=login(client))
    assert response.status_code == 200

    assert client.post(
        "/auth/login", json={"username": "ana", "password": "Secret1!"}).status_code == 401
    login(client, "ana", "N3wPass!")


def test_user_cannot_touch_another_users_account(client, app_db):
    make_user(app_db)
    bob_id = make_user(app_db, username="bob").id
    headers = login(client)

    assert client.get(f"/users/{bob_id}", headers=headers).status_code == 401
    assert client.patch(
        f"/users/{bob_id}", json={"address": "x"}, headers=headers).status_code == 401
    assert client.delete(f"/users/{bob_id}", headers=headers).status_code == 401


def test_admin_patches_and_deletes_product(client, app_db):
    make_user(app_db, username="root", is_admin=True)
    product_id = make_product(app_db).id
    headers = login(client, "root")

    response = client.patch(
        f"/products/{product_id}", json={"price": "12.50"}, headers=headers)
    assert response.status_code == 200
    assert float(response.json()["price"]) == 12.5
    assert response.json()["name"] == "Mug"

    assert client.delete(f"/products/{product_id}", headers=headers).status_code == 204
    assert client.delete(f"/products/{product_id}", headers=headers).status_code == 404


def test_favorites_flow(client, app_db):
    user_id = make_user(app_db).id
    product_id = make_product(app_db).id
    headers = login(client)
    url = f"/users/{user_id}/favorites"

    response = client.post(url, json={"product_id": str(product_id)}, headers=headers)
    assert response.status_code == 201
    favorite = response.json()
    assert favorite["user_id"] == str(user_id)
    assert favorite["product_id"] == str(product_id)

    response = client.post(url, json={"product_id": str(product_id)}, headers=headers)
    assert response.status_code == 409

    assert [item["id"] for item in client.get(url, headers=headers).json()] == [favorite["id"]]

    assert client.delete(f"{url}/{favorite['id']}", headers=headers).status_code == 204
    assert client.get(url, headers=headers).json() == []


def test_favorite_for_unknown_product_returns_404(client, app_db):
    user_id = make_user(app_db).id
    response = client.post(
        f"/users/{user_id}/favorites",
        json={"product_id": str(uuid.uuid4())},
        headers=login(client),
    )
    assert response.status_code == 404


def test_cannot_add_favorite_for_another_user(client, app_db):
    make_user(app_db)
    bob_id = make_user(app_db, username="bob").id
    product_id = make_product(app_db).id

    response = client.post(
        f"/users/{bob_id}/favorites",
        json={"product_id": str(product_id)},
        headers=login(client),
    )
    assert response.status_code == 401


def test_long_password_cannot_log_in_with_its_prefix(client):
    response = client.post("/users/signup", json={
        "username": "ana", "password": "a" * 72 + "secret", "email": "ana@x.com",
    })
    assert response.status_code == 400
    assert client.post(
        "/auth/login", json={"username": "ana", "password": "a" * 72}).status_code == 401


def test_password_at_bcrypt_limit_round_trips(client):
    password = "a" * 72
    response = client.post("/users/signup", json={
        "username": "ana", "password": password, "email": "ana@x.com",
    })
    assert response.status_code == 201
    login(client, "ana", password)


def test_password_with_nul_byte_returns_400(client):
    response = client.post("/users/signup", json={
        "username": "ana", "password": "abc\u0000def", "email": "ana@x.com",
    })
    assert response.status_code == 400


def test_overlong_password_patch_returns_400(client, app_db):
    user_id = make_user(app_db).id
    response = client.patch(
        f"/users/{user_id}", json={"password": "b" * 73}, headers=login(client))
    assert response.status_code == 400
    login(client)


def test_infrastructure_error_detail_is_not_exposed(client, monkeypatch):
    def broken_store(db):
        raise InfrastructureError("secret detail: connection to 10.0.0.5 refused")

    monkeypatch.setattr(product_service, "list_products", broken_store)

    response = client.get("/products")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert "secret detail" not in response.text


def test_unexpected_error_detail_is_not_exposed(app, client, monkeypatch):
    def crash(db):
        raise RuntimeError("secret detail")

    monkeypatch.setattr(product_service, "list_products", crash)

    response = TestClient(app, raise_server_exceptions=False).get("/products")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert "secret detail" not in response.text


def test_ownership_and_role_checks_compose(app, client, app_db):
    reports = APIRouter()

    @reports.get(
        "/users/{user_id}/reports",
        dependencies=[Depends(require_owner), Depends(require_admin)],
    )
    def list_reports(user_id: uuid.UUID):
        return {"user_id": str(user_id)}

    app.include_router(reports)

    ana_id = make_user(app_db).id
    root_id = make_user(app_db, username="root", is_admin=True).id
    ana = login(client)
    root = login(client, "root")

    # Authentication comes first
    assert client.get(f"/users/{ana_id}/reports").status_code == 401
    # Ownership fails before the role is looked at
    assert client.get(f"/users/{root_id}/reports", headers=ana).status_code == 401
    assert client.get(f"/users/{ana_id}/reports", headers=root).status_code == 401
    # Owner without the role
    assert client.get(f"/users/{ana_id}/reports", headers=ana).status_code == 403
    # Both checks pass
    response = client.get(f"/users/{root_id}/reports", headers=root)
    assert response.status_code == 200
    assert response.json() == {"user_id": str(root_id)}
