import os

os.environ.setdefault("MINITABLE_DB", ":memory:")

import pytest
from fastapi.testclient import TestClient

from main import create_app


@pytest.fixture
def client():
    return TestClient(create_app(":memory:"))


def test_health(client):
    assert client.get("/api/health").json() == {"text": "ok"}


def test_author_lifecycle(client):
    created = client.post("/api/authors", json={"name": "Ann", "email": "ann@example.com"}).json()
    assert created["author_id"] == 1
    assert created["created"] is not None

    clash = client.post("/api/authors", json={"name": "Other", "email": "ann@example.com"})
    assert clash.status_code == 422
    assert "email" in clash.json()["detail"]

    updated = client.put("/api/authors/1", json={"name": "Ann B"}).json()
    assert updated["name"] == "Ann B"

    assert client.get("/api/authors/options").json() == {"1": "Ann B"}
    assert [a["name"] for a in client.get("/api/authors", params={"name": "Ann"}).json()] == ["Ann B"]
    assert client.get("/api/authors/2").status_code == 404


def test_article_with_nested_author(client):
    response = client.post("/api/articles", json={
        "title": "Hello world",
        "published": True,
        "author": {"name": "Ann"},
    })

    assert response.status_code == 200
    article = response.json()
    assert article["author_id"] == 1
    assert client.get("/api/authors/1").json()["name"] == "Ann"
    assert [a["title"] for a in client.get("/api/articles", params={"author_id": 1}).json()] == ["Hello world"]
    assert [a["title"] for a in client.get("/api/articles", params={"published": True}).json()] == ["Hello world"]


def test_invalid_article_is_rejected_with_nothing_saved(client):
    response = client.post("/api/articles", json={"title": "Hi", "author": {"name": "Ann"}})

    assert response.status_code == 422
    assert "title" in response.json()["detail"]
    assert client.get("/api/authors").json() == []


def test_nested_author_errors_are_reported(client):
    response = client.post("/api/articles", json={"title": "Hello world", "author": {"name": ""}})

    assert response.status_code == 422
    assert "author" in response.json()["detail"]
    assert client.get("/api/articles").json() == []


def test_deleting_an_author_removes_their_articles(client):
    client.post("/api/articles", json={"title": "Hello world", "author": {"name": "Ann"}})
    client.post("/api/articles", json={"title": "Second post", "author_id": 1})

    assert client.delete("/api/authors/1").json() == {"message": "Author deleted"}
    assert client.get("/api/articles").json() == []
    assert client.delete("/api/authors/1").status_code == 404


def test_article_update_and_delete(client):
    client.post("/api/articles", json={"title": "Hello world"})

    updated = client.put("/api/articles/1", json={"title": "Hello again", "published": True}).json()
    assert updated["title"] == "Hello again"
    assert updated["published"] is True

    assert client.put("/api/articles/1", json={"title": ""}).status_code == 422
    assert client.delete("/api/articles/1").json() == {"message": "Article deleted"}
    assert client.get("/api/articles/1").status_code == 404
