"""
Tests for the document, suggestion and artifact kind API endpoints.
"""

import uuid

import pytest

from aichatbot.artifacts import SuggestionGenerator, build_default_registry
from aichatbot.chat import ChatOrchestrator
from aichatbot.db.repositories import DocumentRepository, SuggestionRepository
from aichatbot.models.db import DocumentKind
from fakes import ScriptedProvider, make_models


@pytest.fixture
def headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def document(db_session, user_id):
    repo = DocumentRepository(db_session)
    document_id = uuid.uuid4()
    repo.save(
        id=document_id,
        title="Essay",
        kind=DocumentKind.TEXT,
        content="First draft",
        user_id=user_id,
    )
    latest = repo.save(
        id=document_id,
        title="Essay",
        kind=DocumentKind.TEXT,
        content="Second draft",
        user_id=user_id,
    )
    db_session.flush()
    return latest


class TestDocumentEndpoints:
    def test_list_versions(self, api_client, headers, document):
        response = api_client.get(f"/api/document/{document.id}", headers=headers)

        assert response.status_code == 200
        assert [v["content"] for v in response.json()] == [
            "First draft",
            "Second draft",
        ]

    def test_unknown_document(self, api_client, headers):
        response = api_client.get(f"/api/document/{uuid.uuid4()}", headers=headers)

        assert response.status_code == 404

    def test_foreign_document(self, api_client, document):
        response = api_client.get(
            f"/api/document/{document.id}", headers={"X-User-Id": str(uuid.uuid4())}
        )

        assert response.status_code == 403

    def test_save_new_version(self, api_client, headers, db_session, document):
        response = api_client.post(
            f"/api/document/{document.id}",
            json={"title": "Essay", "kind": "text", "content": "Edited"},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["content"] == "Edited"
        versions = DocumentRepository(db_session).list_versions(document.id)
        assert len(versions) == 3

    def test_save_into_foreign_document(self, api_client, document):
        response = api_client.post(
            f"/api/document/{document.id}",
            json={"title": "Mine now", "kind": "text", "content": "x"},
            headers={"X-User-Id": str(uuid.uuid4())},
        )

        assert response.status_code == 403

    def test_revert_deletes_later_versions(
        self, api_client, headers, db_session, document
    ):
        repo = DocumentRepository(db_session)
        first = repo.list_versions(document.id)[0]

        response = api_client.delete(
            f"/api/document/{document.id}",
            params={"after": first.created_at.isoformat()},
            headers=headers,
        )

        assert response.json() == {"deleted": 1}
        assert [v.content for v in repo.list_versions(document.id)] == ["First draft"]


class TestSuggestionEndpoints:
    @pytest.fixture
    def suggestion(self, db_session, document, user_id):
        [suggestion] = SuggestionRepository(db_session).save_for_document(
            document_id=document.id,
            document_created_at=document.created_at,
            suggestions=[
                {
                    "original_text": "Second draft",
                    "suggested_text": "Final draft",
                    "description": "Be decisive",
                }
            ],
            user_id=user_id,
        )
        db_session.flush()
        return suggestion

    def test_list_suggestions(self, api_client, headers, document, suggestion):
        response = api_client.get(
            "/api/suggestions",
            params={"document_id": str(document.id)},
            headers=headers,
        )

        assert response.status_code == 200
        [item] = response.json()
        assert item["suggested_text"] == "Final draft"
        assert item["is_resolved"] is False

    def test_foreign_suggestions(self, api_client, document, suggestion):
        response = api_client.get(
            "/api/suggestions",
            params={"document_id": str(document.id)},
            headers={"X-User-Id": str(uuid.uuid4())},
        )

        assert response.status_code == 403

    def test_resolve_suggestion(self, api_client, headers, suggestion):
        response = api_client.post(
            f"/api/suggestions/{suggestion.id}/resolve", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["is_resolved"] is True

    def test_resolve_unknown_suggestion(self, api_client, headers):
        response = api_client.post(
            f"/api/suggestions/{uuid.uuid4()}/resolve", headers=headers
        )

        assert response.status_code == 404


class TestArtifactKinds:
    def test_kinds_vocabulary(self, api_client, session_scope):
        models = make_models(ScriptedProvider())
        api_client.app.state.orchestrator = ChatOrchestrator(
            models=models,
            handlers=build_default_registry(models, session_scope),
            suggestions=SuggestionGenerator(models, session_scope),
            session_scope=session_scope,
        )

        response = api_client.get("/api/artifacts/kinds")

        assert response.status_code == 200
        kinds = response.json()["kinds"]
        assert set(kinds) == {"text", "code", "sheet", "image"}
        assert "code-delta" in kinds["code"]

    def test_kinds_unavailable_without_provider(self, api_client):
        assert api_client.get("/api/artifacts/kinds").status_code == 503


class TestHealth:
    def test_root(self, api_client):
        assert api_client.get("/").json()["status"] == "ok"
