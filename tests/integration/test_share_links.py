"""
Share link integration tests.

Verifies, through the HTTP API:
- Owner, session and share-link access to folders and files
- PIN-locked links, deactivated and expired links
- Person links selected with t=p
- Exactly-once use counting per request
- Infrastructure failures reported apart from denials
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from sharegate.application.services import access_policy
from tests.conftest import anonymous, login, sql

FUTURE = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()


def token_uses(client: TestClient, folder_id: str, token_id: str) -> int:
    tokens = client.get(f"/api/folders/{folder_id}/tokens").json()
    return next(t["uses"] for t in tokens if t["id"] == token_id)


def upload(client: TestClient, folder_id: str, params=None, name="beach.jpg", **form):
    return client.post(
        f"/api/folders/{folder_id}/files",
        params=params or {},
        files={"file": (name, b"fake image bytes", "image/jpeg")},
        data=form,
    )


class TestFolderReadAccess:

    def test_owner_reads_without_token(self, owner_client: TestClient, shared_folder: dict):
        response = owner_client.get(f"/api/folders/{shared_folder['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["is_owner"] is True
        assert data["can_write"] is True
        assert data["can_map"] is True

    def test_anonymous_without_token(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(f"/api/folders/{shared_folder['id']}")

        assert response.status_code == 401
        assert response.json() == {"error": "unauthenticated"}

    def test_other_user_without_token(
        self, owner_client: TestClient, shared_folder: dict, visitor: dict
    ):
        login(owner_client, visitor)

        response = owner_client.get(f"/api/folders/{shared_folder['id']}")

        assert response.status_code == 403
        assert response.json() == {"error": "no-token"}

    def test_anonymous_with_read_link(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["read"]["token"]}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["is_owner"] is False
        assert data["can_write"] is False
        assert data["can_map"] is False

    def test_unknown_link(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}", params={"share": "not-a-token"}
            )

        assert response.status_code == 403
        assert response.json() == {"error": "invalid-token"}

    def test_link_of_other_folder(self, owner_client: TestClient, shared_folder: dict):
        other = owner_client.post("/api/folders", json={"name": "Other"}).json()["folder"]

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{other['id']}",
                params={"share": shared_folder["read"]["token"]}
            )

        assert response.json() == {"error": "invalid-token"}

    def test_missing_folder(self, owner_client: TestClient):
        assert owner_client.get("/api/folders/does-not-exist").status_code == 404


class TestUsesCounting:

    def test_one_use_per_request(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]
        token = shared_folder["write"]

        with anonymous(owner_client) as client:
            # One use per request, whatever the view reports about WRITE and the map
            client.get(f"/api/folders/{folder_id}", params={"share": token["token"]})
            client.get(f"/api/folders/{folder_id}", params={"share": token["token"]})

        assert token_uses(owner_client, folder_id, token["id"]) == 2

    def test_owner_access_not_counted(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]
        owner_client.get(f"/api/folders/{folder_id}", params={"share": shared_folder["read"]["token"]})

        assert token_uses(owner_client, folder_id, shared_folder["read"]["id"]) == 0

    def test_validate_share_not_counted(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{folder_id}/validate-share",
                params={"share": shared_folder["write"]["token"]}
            )

        assert response.json()["result"] == "valid-token"
        assert response.json()["permission"] == "WRITE"
        assert token_uses(owner_client, folder_id, shared_folder["write"]["id"]) == 0

    def test_denied_request_not_counted(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]

        with anonymous(owner_client) as client:
            upload(client, folder_id, {"share": shared_folder["read"]["token"]})

        assert token_uses(owner_client, folder_id, shared_folder["read"]["id"]) == 0

    def test_rejected_upload_not_counted(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]
        params = {"share": shared_folder["write"]["token"]}

        with anonymous(owner_client) as client:
            empty = client.post(
                f"/api/folders/{folder_id}/files",
                params=params,
                files={"file": ("empty.jpg", b"", "image/jpeg")},
            )
            half_located = upload(client, folder_id, params, latitude="10.0")

        assert empty.status_code == 400
        assert half_located.status_code == 400
        assert token_uses(owner_client, folder_id, shared_folder["write"]["id"]) == 0

    def test_accepted_upload_counted_once(self, owner_client: TestClient, shared_folder: dict):
        folder_id = shared_folder["id"]

        with anonymous(owner_client) as client:
            response = upload(client, folder_id, {"share": shared_folder["write"]["token"]})

        assert response.status_code == 200, response.text
        assert token_uses(owner_client, folder_id, shared_folder["write"]["id"]) == 1


class TestWriteAccess:

    def test_read_link_cannot_upload(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = upload(client, shared_folder["id"], {"share": shared_folder["read"]["token"]})

        assert response.status_code == 403
        assert response.json() == {"error": "insufficient-permission"}

    def test_write_link_uploads_as_folder_owner(
        self, owner_client: TestClient, shared_folder: dict, owner: dict
    ):
        with anonymous(owner_client) as client:
            response = upload(client, shared_folder["id"], {"share": shared_folder["write"]["token"]})

        assert response.status_code == 200, response.text
        file = response.json()["file"]
        assert file["filename"] == "beach.jpg"

        view = owner_client.get(f"/api/folders/{shared_folder['id']}").json()
        assert [f["id"] for f in view["files"]] == [file["id"]]

    def test_write_link_renames(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.put(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["write"]["token"]},
                json={"name": "Renamed"}
            )

        assert response.status_code == 200
        assert response.json()["folder"]["name"] == "Renamed"

    def test_write_link_cannot_delete(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.delete(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["write"]["token"]}
            )

        assert response.status_code == 403
        assert response.json() == {"error": "insufficient-permission"}


class TestLockedLinks:

    @pytest.fixture
    def locked_folder(self, owner_client: TestClient, shared_folder: dict) -> dict:
        response = owner_client.put(
            f"/api/tokens/accessToken/{shared_folder['read']['id']}/lock",
            json={"pin": "1234"}
        )
        assert response.status_code == 200, response.text
        assert response.json()["token"]["locked"] is True
        assert "pin_code_hash" not in response.json()["token"]
        return shared_folder

    def test_pin_required(self, owner_client: TestClient, locked_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"]}
            )

        assert response.status_code == 401
        assert response.json() == {"error": "pin-required"}

    def test_wrong_pin(self, owner_client: TestClient, locked_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"], "h": "9999"}
            )

        assert response.status_code == 403
        assert response.json() == {"error": "invalid-pin"}

    def test_correct_pin(self, owner_client: TestClient, locked_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"], "h": "1234"}
            )

        assert response.status_code == 200

    def test_view_verifies_pin_once(
        self, owner_client: TestClient, locked_folder: dict, monkeypatch
    ):
        checks = Mock(wraps=access_policy.verify_pin)
        monkeypatch.setattr(access_policy, "verify_pin", checks)

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"], "h": "1234"}
            )

        assert response.status_code == 200
        assert response.json()["can_write"] is False
        assert response.json()["can_map"] is False
        assert checks.call_count == 1

    def test_unlock(self, owner_client: TestClient, locked_folder: dict):
        owner_client.delete(f"/api/tokens/accessToken/{locked_folder['read']['id']}/lock")

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"]}
            )

        assert response.status_code == 200

    def test_malformed_pin_hash_is_unavailable(
        self, owner_client: TestClient, locked_folder: dict, patched_config: dict
    ):
        sql(
            patched_config["db_path"],
            "UPDATE access_tokens SET pin_code_hash = 'garbage' WHERE id = ?",
            (locked_folder["read"]["id"],)
        )

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{locked_folder['id']}",
                params={"share": locked_folder["read"]["token"], "h": "1234"}
            )

        assert response.status_code == 503
        assert response.json() == {"error": "unavailable"}


class TestUnusableLinks:

    def test_deactivated_link(self, owner_client: TestClient, shared_folder: dict):
        owner_client.put(
            f"/api/tokens/accessToken/{shared_folder['read']['id']}/active",
            json={"is_active": False}
        )

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["read"]["token"]}
            )

        assert response.json() == {"error": "invalid-token"}

    def test_expired_link(self, owner_client: TestClient, shared_folder: dict, patched_config: dict):
        yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        sql(
            patched_config["db_path"],
            "UPDATE access_tokens SET expires = ? WHERE id = ?",
            (yesterday, shared_folder["read"]["id"])
        )

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["read"]["token"]}
            )

        assert response.json() == {"error": "invalid-token"}

    def test_deleted_link(self, owner_client: TestClient, shared_folder: dict):
        response = owner_client.post(
            "/api/tokens/accessToken/delete", json={"ids": [shared_folder["read"]["id"]]}
        )
        assert response.json()["deleted"] == 1

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["read"]["token"]}
            )

        assert response.json() == {"error": "invalid-token"}


class TestPersonLinks:

    @pytest.fixture
    def invitation(self, owner_client: TestClient, shared_folder: dict, visitor: dict) -> dict:
        response = owner_client.post(
            f"/api/folders/{shared_folder['id']}/person-tokens",
            json={"emails": [visitor["email"]], "permission": "READ", "expires": FUTURE}
        )
        assert response.status_code == 200, response.text
        return response.json()["tokens"][0]

    def test_person_link_with_type(self, owner_client: TestClient, shared_folder: dict, invitation: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": invitation["token"], "t": "p"}
            )

        assert response.status_code == 200

    def test_person_link_without_type(self, owner_client: TestClient, shared_folder: dict, invitation: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}", params={"share": invitation["token"]}
            )

        assert response.json() == {"error": "invalid-token"}

    def test_owner_link_with_person_type(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}",
                params={"share": shared_folder["read"]["token"], "t": "p"}
            )

        assert response.json() == {"error": "invalid-token"}

    def test_shared_with_me(
        self, owner_client: TestClient, shared_folder: dict, invitation: dict, visitor: dict
    ):
        login(owner_client, visitor)

        response = owner_client.get("/api/shared-with-me")

        assert response.status_code == 200
        entries = response.json()
        assert [e["folder_id"] for e in entries] == [shared_folder["id"]]
        assert entries[0]["owner_name"] == "Alice"
        assert entries[0]["token"] == invitation["token"]


class TestMapAccess:

    def test_link_without_map(self, owner_client: TestClient, shared_folder: dict):
        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}/map",
                params={"share": shared_folder["write"]["token"]}
            )

        assert response.status_code == 403
        assert response.json() == {"error": "insufficient-permission"}

    def test_link_with_map(self, owner_client: TestClient, shared_folder: dict):
        upload(owner_client, shared_folder["id"], latitude="48.85", longitude="2.35")
        map_link = owner_client.post(
            f"/api/folders/{shared_folder['id']}/tokens",
            json={"permission": "READ", "expires": FUTURE, "allow_map": True}
        ).json()["token"]

        with anonymous(owner_client) as client:
            response = client.get(
                f"/api/folders/{shared_folder['id']}/map", params={"share": map_link["token"]}
            )

        assert response.status_code == 200
        points = response.json()["points"]
        assert [(p["latitude"], p["longitude"]) for p in points] == [(48.85, 2.35)]

    def test_owner_reads_map(self, owner_client: TestClient, shared_folder: dict):
        response = owner_client.get(f"/api/folders/{shared_folder['id']}/map")
        assert response.status_code == 200
