"""
tests/test_cars_api.py -- Integration tests for /api/cars routes.

These tests go through routing, bearer auth, the repository and the asset
manager, and assert on the upload directory to check the file lifecycle:
  - create/update failures, validation or database, leave none of the
    request's files behind
  - replacing images removes exactly the old files
  - deleting a car removes all its files
Owner scoping is checked with two users: the other user's cars are 404.
"""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from conftest import PNG_BYTES, image, signup, stored_files


def _create(client: TestClient, headers: dict, files=None, **fields) -> dict:
    data = {"title": "Tesla", "description": "EV", "tags": "electric, sedan"}
    data.update(fields)
    resp = client.post("/api/cars", data=data, files=files, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCarAuth:
    def test_routes_require_token(self, client: TestClient) -> None:
        assert client.get("/api/cars").status_code == 401
        assert client.post("/api/cars", data={"title": "t", "description": "d"}).status_code == 401
        assert client.get("/api/cars/abc").status_code == 401
        assert client.patch("/api/cars/abc", data={"title": "t"}).status_code == 401
        assert client.delete("/api/cars/abc").status_code == 401


class TestCreateCar:
    def test_signup_list_create_example(self, client: TestClient) -> None:
        headers = signup(client, "a@x.com", "secret1")

        resp = client.get("/api/cars", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == []

        car = _create(client, headers)
        assert car["title"] == "Tesla"
        assert car["description"] == "EV"
        assert car["tags"] == ["electric", "sedan"]
        assert car["images"] == []
        assert car["image_urls"] == []
        assert car["created_at"]
        assert car["updated_at"]

    def test_create_with_images(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        car = _create(
            client,
            auth_headers,
            files=[image("front.jpg"), image("back.png", PNG_BYTES, "image/png")],
        )

        assert len(car["images"]) == 2
        assert stored_files(upload_dir) == set(car["images"])
        assert car["image_urls"] == [f"http://testserver/uploads/{ref}" for ref in car["images"]]

    def test_stored_image_is_served(self, client: TestClient, auth_headers: dict) -> None:
        car = _create(client, auth_headers, files=[image("back.png", PNG_BYTES, "image/png")])
        resp = client.get(f"/uploads/{car['images'][0]}")
        assert resp.status_code == 200
        assert resp.content == PNG_BYTES

    def test_missing_title_leaves_no_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        resp = client.post(
            "/api/cars",
            data={"description": "EV"},
            files=[image(), image()],
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Title is required"}
        assert stored_files(upload_dir) == set()

    def test_blank_description_is_rejected(self, client: TestClient, auth_headers: dict) -> None:
        resp = client.post("/api/cars", data={"title": "Tesla", "description": "  "}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Description is required"}

    def test_disallowed_type_leaves_no_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        resp = client.post(
            "/api/cars",
            data={"title": "Tesla", "description": "EV"},
            files=[image(), image("anim.gif", b"GIF89a", "image/gif")],
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert stored_files(upload_dir) == set()
        assert client.get("/api/cars", headers=auth_headers).json() == []

    def test_oversized_image_is_rejected(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        big = b"\x00" * (5 * 1024 * 1024 + 1)
        resp = client.post(
            "/api/cars",
            data={"title": "Tesla", "description": "EV"},
            files=[image(), image("big.jpg", big)],
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "File is too large. Maximum size is 5MB"}
        assert stored_files(upload_dir) == set()

    def test_more_than_ten_images_is_rejected(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        resp = client.post(
            "/api/cars",
            data={"title": "Tesla", "description": "EV"},
            files=[image(f"{i}.jpg") for i in range(11)],
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert stored_files(upload_dir) == set()


class TestListCars:
    def test_newest_first(self, client: TestClient, auth_headers: dict) -> None:
        first = _create(client, auth_headers, title="First")
        second = _create(client, auth_headers, title="Second")
        ids = [car["id"] for car in client.get("/api/cars", headers=auth_headers).json()]
        assert ids == [second["id"], first["id"]]

    def test_search_matches_title_description_and_tags(self, client: TestClient, auth_headers: dict) -> None:
        tesla = _create(client, auth_headers, title="Tesla Model 3", description="EV", tags="electric")
        jeep = _create(client, auth_headers, title="Jeep", description="Rugged SUV", tags="offroad")
        mini = _create(client, auth_headers, title="Mini", description="Small", tags="city, Compact")

        def search(term: str) -> list[str]:
            resp = client.get("/api/cars", params={"search": term}, headers=auth_headers)
            assert resp.status_code == 200
            return [car["id"] for car in resp.json()]

        assert search("model") == [tesla["id"]]
        assert search("suv") == [jeep["id"]]
        assert search("COMPACT") == [mini["id"]]
        assert search("lect") == [tesla["id"]]
        assert search("nothing-matches") == []
        assert sorted(search("")) == sorted([tesla["id"], jeep["id"], mini["id"]])

    def test_search_is_literal(self, client: TestClient, auth_headers: dict) -> None:
        discounted = _create(client, auth_headers, title="Sale 50% off")
        _create(client, auth_headers, title="Sale 500 off")

        resp = client.get("/api/cars", params={"search": "50%"}, headers=auth_headers)
        assert [car["id"] for car in resp.json()] == [discounted["id"]]
        resp = client.get("/api/cars", params={"search": "_"}, headers=auth_headers)
        assert resp.json() == []

    def test_list_only_shows_own_cars(self, client: TestClient) -> None:
        alice = signup(client, "a@x.com", "secret1")
        bob = signup(client, "b@x.com", "secret1")
        _create(client, alice, title="Alice car")

        assert client.get("/api/cars", headers=bob).json() == []
        assert len(client.get("/api/cars", headers=alice).json()) == 1


class TestOwnership:
    def test_other_user_gets_404_everywhere(self, client: TestClient, upload_dir: Path) -> None:
        alice = signup(client, "a@x.com", "secret1")
        bob = signup(client, "b@x.com", "secret1")
        car = _create(client, alice, files=[image()])
        url = f"/api/cars/{car['id']}"

        assert client.get(url, headers=bob).status_code == 404
        resp = client.patch(url, data={"title": "Stolen"}, files=[image()], headers=bob)
        assert resp.status_code == 404
        assert client.delete(url, headers=bob).status_code == 404

        unchanged = client.get(url, headers=alice).json()
        assert unchanged["title"] == "Tesla"
        assert unchanged["images"] == car["images"]
        assert stored_files(upload_dir) == set(car["images"])

    def test_unknown_and_malformed_ids(self, client: TestClient, auth_headers: dict) -> None:
        resp = client.get("/api/cars/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Car not found"}
        assert client.get("/api/cars/not-an-id", headers=auth_headers).status_code == 404
        assert client.delete("/api/cars/not-an-id", headers=auth_headers).status_code == 404


class TestUpdateCar:
    def test_partial_update_keeps_other_fields(self, client: TestClient, auth_headers: dict) -> None:
        car = _create(client, auth_headers, files=[image()])
        resp = client.patch(f"/api/cars/{car['id']}", data={"title": "Tesla S"}, headers=auth_headers)
        assert resp.status_code == 200, resp.text
        updated = resp.json()
        assert updated["title"] == "Tesla S"
        assert updated["description"] == "EV"
        assert updated["tags"] == ["electric", "sedan"]
        assert updated["images"] == car["images"]
        assert updated["updated_at"] >= car["updated_at"]

    def test_tags_are_replaced(self, client: TestClient, auth_headers: dict) -> None:
        car = _create(client, auth_headers)
        url = f"/api/cars/{car['id']}"

        resp = client.patch(url, data={"tags": "hatchback , red"}, headers=auth_headers)
        assert resp.json()["tags"] == ["hatchback", "red"]
        # An empty form value counts as omitted
        resp = client.patch(url, data={"tags": ""}, headers=auth_headers)
        assert resp.json()["tags"] == ["hatchback", "red"]
        resp = client.patch(url, data={"tags": ","}, headers=auth_headers)
        assert resp.json()["tags"] == []

    def test_new_images_replace_old_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        car = _create(client, auth_headers, files=[image("a.jpg"), image("b.jpg")])
        old = set(car["images"])

        resp = client.patch(
            f"/api/cars/{car['id']}",
            files=[image("c.png", PNG_BYTES, "image/png")],
            headers=auth_headers,
        )
        assert resp.status_code == 200, resp.text
        updated = resp.json()

        assert len(updated["images"]) == 1
        assert not old & set(updated["images"])
        assert stored_files(upload_dir) == set(updated["images"])
        assert updated["image_urls"] == [f"http://testserver/uploads/{updated['images'][0]}"]

    def test_failed_update_discards_new_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        car = _create(client, auth_headers, files=[image()])
        resp = client.patch(
            f"/api/cars/{car['id']}",
            data={"title": "   "},
            files=[image("new.jpg")],
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert stored_files(upload_dir) == set(car["images"])
        unchanged = client.get(f"/api/cars/{car['id']}", headers=auth_headers).json()
        assert unchanged["title"] == "Tesla"
        assert unchanged["images"] == car["images"]


def _failing_commit(self) -> None:
    raise SQLAlchemyError("database unavailable")


class TestStorageFailures:
    """The database is patched to fail only after setup, and restored before checks."""

    def test_failed_create_commit_discards_files(
        self, client: TestClient, auth_headers: dict, upload_dir: Path, monkeypatch
    ) -> None:
        monkeypatch.setattr(Session, "commit", _failing_commit)
        resp = client.post(
            "/api/cars",
            data={"title": "Tesla", "description": "EV"},
            files=[image(), image("back.png", PNG_BYTES, "image/png")],
            headers=auth_headers,
        )
        monkeypatch.undo()

        assert resp.status_code == 500
        assert resp.json() == {"error": "Could not create car"}
        assert stored_files(upload_dir) == set()
        assert client.get("/api/cars", headers=auth_headers).json() == []

    def test_failed_update_commit_keeps_old_images(
        self, client: TestClient, auth_headers: dict, upload_dir: Path, monkeypatch
    ) -> None:
        car = _create(client, auth_headers, files=[image()])
        url = f"/api/cars/{car['id']}"

        monkeypatch.setattr(Session, "commit", _failing_commit)
        resp = client.patch(url, data={"title": "Tesla S"}, files=[image("new.jpg")], headers=auth_headers)
        monkeypatch.undo()

        assert resp.status_code == 500
        assert resp.json() == {"error": "Could not update car"}
        assert stored_files(upload_dir) == set(car["images"])
        unchanged = client.get(url, headers=auth_headers).json()
        assert unchanged["title"] == "Tesla"
        assert unchanged["images"] == car["images"]


class TestDeleteCar:
    def test_delete_removes_record_and_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        keep = _create(client, auth_headers, title="Keep", files=[image()])
        car = _create(client, auth_headers, files=[image(), image()])

        resp = client.delete(f"/api/cars/{car['id']}", headers=auth_headers)
        assert resp.status_code == 200, resp.text
        deleted = resp.json()
        assert deleted["id"] == car["id"]
        assert deleted["tags"] == ["electric", "sedan"]
        assert deleted["images"] == car["images"]

        assert client.get(f"/api/cars/{car['id']}", headers=auth_headers).status_code == 404
        assert stored_files(upload_dir) == set(keep["images"])

    def test_delete_tolerates_missing_files(self, client: TestClient, auth_headers: dict, upload_dir: Path) -> None:
        car = _create(client, auth_headers, files=[image()])
        (upload_dir / car["images"][0]).unlink()

        resp = client.delete(f"/api/cars/{car['id']}", headers=auth_headers)
        assert resp.status_code == 200


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(client: TestClient) -> None:
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert "error" in resp.json()
