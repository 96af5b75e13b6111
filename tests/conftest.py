"""Test configuration and fixtures for Sharegate.

This module provides isolated test environments:
- Temporary database (SQLite)
- Temporary blob storage directory
- Users and logins for HTTP tests
"""
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator

import bcrypt
import pytest
from fastapi.testclient import TestClient


OWNER = {
    "username": "alice",
    "password": "AlicePass123!",
    "email": "alice@example.com",
    "display_name": "Alice",
}

VISITOR = {
    "username": "bob",
    "password": "BobPass123!",
    "email": "bob@example.com",
    "display_name": "Bob",
}


@pytest.fixture(scope="function")
def isolated_environment(tmp_path: Path) -> Dict:
    """Create completely isolated environment for a single test.

    Returns:
        Dict with paths: db_path, storage_path
    """
    env = {
        "db_path": tmp_path / "test.db",
        "storage_path": tmp_path / "blobs",
    }
    env["storage_path"].mkdir(parents=True, exist_ok=True)
    return env


@pytest.fixture(scope="function")
def patched_config(isolated_environment: Dict, monkeypatch):
    """Point config, the connection pool and storage at the isolated environment."""
    from sharegate import config
    from sharegate.infrastructure.database import connection
    from sharegate.infrastructure.storage import reset_storage

    monkeypatch.setattr(config, "DATABASE_PATH", isolated_environment["db_path"])
    monkeypatch.setattr(config, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(config, "STORAGE_PATH", isolated_environment["storage_path"])
    monkeypatch.setattr(connection, "_pool", None)
    reset_storage()

    yield isolated_environment

    reset_storage()


@pytest.fixture(scope="function")
def client(patched_config: Dict) -> Generator[TestClient, None, None]:
    """Test client with a fresh schema (created by the app lifespan).

    Usage:
        def test_something(client):
            response = client.get("/api/folders")
    """
    from sharegate.main import app

    with TestClient(app) as test_client:
        yield test_client


def insert_user(db_path: Path, credentials: Dict) -> int:
    """Create a user directly in the database (cheap bcrypt rounds)."""
    password_hash = bcrypt.hashpw(
        credentials["password"].encode("utf-8"), bcrypt.gensalt(rounds=4)
    ).decode("utf-8")
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            """INSERT INTO users (username, email, password_hash, display_name)
               VALUES (?, ?, ?, ?)""",
            (credentials["username"], credentials["email"], password_hash,
             credentials["display_name"])
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


@pytest.fixture(scope="function")
def owner(client: TestClient, patched_config: Dict) -> Dict:
    """Folder owner credentials with ``id``."""
    return {**OWNER, "id": insert_user(patched_config["db_path"], OWNER)}


@pytest.fixture(scope="function")
def visitor(client: TestClient, patched_config: Dict) -> Dict:
    """A second, unrelated user."""
    return {**VISITOR, "id": insert_user(patched_config["db_path"], VISITOR)}


def login(client: TestClient, credentials: Dict) -> TestClient:
    """Replace the client's session with one for ``credentials``."""
    client.cookies.clear()
    response = client.post(
        "/login",
        data={"username": credentials["username"], "password": credentials["password"]}
    )
    assert response.status_code == 200, response.text
    assert "sharegate_session" in response.cookies, "Session cookie should be set"
    return client


@contextmanager
def anonymous(client: TestClient):
    """Temporarily drop the session cookie.

    Usage:
        with anonymous(client):
            response = client.get(f"/api/folders/{folder_id}")
    """
    saved = dict(client.cookies)
    client.cookies.clear()
    try:
        yield client
    finally:
        for name, value in saved.items():
            client.cookies.set(name, value)


@pytest.fixture(scope="function")
def owner_client(client: TestClient, owner: Dict) -> TestClient:
    """Client authenticated as the folder owner."""
    return login(client, owner)


@pytest.fixture(scope="function")
def shared_folder(owner_client: TestClient) -> Dict:
    """Folder created through the API, with its default READ and WRITE links.

    Returns:
        Dict with: id, read (token dict), write (token dict)
    """
    response = owner_client.post("/api/folders", json={"name": "Holiday"})
    assert response.status_code == 200, response.text
    folder = response.json()["folder"]
    tokens = {t["permission"]: t for t in folder["tokens"]}
    return {"id": folder["id"], "read": tokens["READ"], "write": tokens["WRITE"]}


def sql(db_path: Path, statement: str, params: tuple = ()) -> None:
    """Run a statement directly against the test database."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(statement, params)
        conn.commit()
    finally:
        conn.close()
