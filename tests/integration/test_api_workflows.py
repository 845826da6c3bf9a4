"""
End-to-end HTTP workflows: login codes, protected folders, uploads,
template documents, downloads, shares and the activity ledger.
"""

import asyncio
import re
from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.integration

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _login(client, code):
    response = client.post("/api/login", json={"loginCode": code})
    assert response.status_code == 200, response.text
    return response.json()


def _pdf(size=1024):
    head = b"%PDF-1.4\n"
    return head + b"0" * (size - len(head))


def _upload(client, name="report.pdf", data=None, mime=PDF_MIME, **form):
    return client.post(
        "/api/documents/upload",
        files={"file": (name, data if data is not None else _pdf(), mime)},
        data=form,
    )


def _actions(client):
    return [entry["action"] for entry in client.get("/api/activity-logs?limit=1000").json()]


class TestAuth:

    def test_register_and_login(self, admin_client, app):
        from fastapi.testclient import TestClient

        created = admin_client.post("/api/register", json={"name": "Alice", "role": "super_admin"})
        assert created.status_code == 201
        alice = created.json()
        assert re.fullmatch(r"ZT-[0-9A-Z]{3}-[0-9A-Z]{3}|ZT-[0-9A-F]{8}", alice["loginCode"])
        assert alice["role"] == "super_admin"

        other = TestClient(app)
        assert _login(other, alice["loginCode"])["id"] == alice["id"]
        assert other.get("/api/user").json()["name"] == "Alice"

    def test_bad_login_code(self, client):
        response = client.post("/api/login", json={"loginCode": "ZT-NOP-E00"})
        assert response.status_code == 401
        assert "message" in response.json()

    def test_missing_login_code_is_400(self, client):
        assert client.post("/api/login", json={}).status_code == 400

    def test_unauthenticated(self, client):
        assert client.get("/api/user").status_code == 401
        assert client.get("/api/documents").status_code == 401
        assert client.get("/api/folders").status_code == 401

    def test_logout_ends_session(self, admin_client):
        assert admin_client.post("/api/logout").json()["success"] is True
        assert admin_client.get("/api/user").status_code == 401

    def test_non_admin_cannot_register(self, user_client):
        response = user_client.post("/api/register", json={"name": "Mallory"})
        assert response.status_code == 403
        assert user_client.get("/api/admin/users").status_code == 403

    def test_deactivated_user_loses_session(self, admin_client, user_client):
        response = admin_client.patch(f"/api/admin/users/{user_client.user['id']}", json={"isActive": False})
        assert response.status_code == 200
        assert response.json()["isActive"] is False
        assert user_client.get("/api/user").status_code == 401

    def test_login_fails_when_session_store_is_down(self, config):
        from fastapi.testclient import TestClient

        from docmgr.api.app import create_app
        from docmgr.engine.config import RedisConfig

        config.security.session_backend = "redis"
        config.redis = RedisConfig(url="redis://127.0.0.1:1/0")
        with TestClient(create_app(config)) as c:
            response = c.post("/api/login", json={"loginCode": "ADMIN-2025"})
            assert response.status_code == 500
            assert response.json() == {"message": "Session store unavailable"}
            assert "docmgr_session" not in response.cookies

    def test_login_purges_expired_sessions(self, app, admin_client):
        from datetime import timedelta

        from docmgr.db.models import UserSession
        from docmgr.db.session import session_scope

        runtime = app.state.runtime
        runtime.sessions.create(admin_client.get("/api/user").json()["id"])
        with session_scope(runtime.session_factory) as session:
            assert session.query(UserSession).count() == 2
            for row in session.query(UserSession).all():
                row.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)

        _login(admin_client, "ADMIN-2025")
        with session_scope(runtime.session_factory) as session:
            assert session.query(UserSession).count() == 1


class TestFolders:

    def test_seeded_default_folder(self, admin_client):
        names = [f["name"] for f in admin_client.get("/api/folders").json()]
        assert "General Documents" in names

    def test_protected_folder_verify(self, admin_client):
        folder = admin_client.post(
            "/api/folders",
            json={"name": "HR", "hasSecurityCode": True, "securityCode": "1234"},
        ).json()
        assert folder["hasSecurityCode"] is True
        assert "securityCode" not in folder

        wrong = admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "wrong"})
        assert wrong.status_code == 401
        assert wrong.json()["message"] == "Invalid security code"

        ok = admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "1234"})
        assert ok.status_code == 200
        assert ok.json() == {"success": True}

    def test_protected_folder_without_code(self, admin_client):
        response = admin_client.post("/api/folders", json={"name": "HR", "hasSecurityCode": True})
        assert response.status_code == 400

    def test_missing_folder(self, admin_client):
        assert admin_client.get("/api/folders/nope").status_code == 404

    def test_lock_enforced_until_verified(self, admin_client):
        folder = admin_client.post(
            "/api/folders",
            json={"name": "Legal", "hasSecurityCode": True, "securityCode": "9999"},
        ).json()
        fid = folder["id"]

        assert admin_client.get(f"/api/folders/{fid}/documents").status_code == 403
        assert _upload(admin_client, folderId=fid).status_code == 403

        admin_client.post(f"/api/folders/{fid}/verify-access", json={"securityCode": "9999"})
        assert _upload(admin_client, folderId=fid).status_code == 201
        assert len(admin_client.get(f"/api/folders/{fid}/documents").json()) == 1

    def test_locked_documents_redacted_in_global_list(self, admin_client, user_client):
        folder = admin_client.post(
            "/api/folders",
            json={"name": "Board", "hasSecurityCode": True, "securityCode": "4321"},
        ).json()
        admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "4321"})
        doc = _upload(admin_client, name="minutes.pdf", folderId=folder["id"]).json()

        listed = {d["id"]: d for d in user_client.get("/api/documents").json()}
        assert listed[doc["id"]] == {"id": doc["id"], "folderId": folder["id"], "locked": True}
        assert user_client.get(f"/api/documents/{doc['id']}").status_code == 403
        assert user_client.get(f"/api/documents/{doc['id']}/download").status_code == 403

        # The admin's session unlocked it
        assert admin_client.get(f"/api/documents/{doc['id']}").json()["name"] == "minutes.pdf"

    def test_unlock_is_per_session(self, admin_client, user_client):
        folder = admin_client.post(
            "/api/folders",
            json={"name": "Payroll", "hasSecurityCode": True, "securityCode": "0000"},
        ).json()
        admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "0000"})
        assert user_client.get(f"/api/folders/{folder['id']}/documents").status_code == 403


class TestDocuments:

    def test_upload_into_folder(self, admin_client):
        folder = admin_client.post("/api/folders", json={"name": "Contracts"}).json()
        size = 2 * 1024 * 1024
        response = _upload(admin_client, name="deal.pdf", data=_pdf(size), category="contracts", folderId=folder["id"])
        assert response.status_code == 201, response.text
        doc = response.json()
        assert doc["fileType"] == "pdf"
        assert doc["fileSize"] == size
        assert doc["folderId"] == folder["id"]
        assert re.fullmatch(rf"CON-{datetime.now(timezone.utc).year}-\d{{3}}", doc["documentCode"])
        assert doc["metadata"]["mimetype"] == PDF_MIME

        in_folder = admin_client.get(f"/api/folders/{folder['id']}/documents").json()
        assert [d["id"] for d in in_folder] == [doc["id"]]

    def test_upload_rejects_mime_type(self, admin_client):
        response = _upload(admin_client, name="notes.txt", data=b"hello", mime="text/plain")
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid file type")

    def test_upload_without_file(self, admin_client):
        response = admin_client.post("/api/documents/upload", data={"category": "memos"})
        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"

    def test_upload_unknown_category(self, admin_client):
        assert _upload(admin_client, category="poems").status_code == 400

    def test_download_round_trip(self, admin_client):
        body = _pdf(4096)
        doc = _upload(admin_client, name="Q3 report.pdf", data=body).json()
        response = admin_client.get(f"/api/documents/{doc['id']}/download")
        assert response.status_code == 200
        assert response.content == body
        assert response.headers["content-type"].startswith(PDF_MIME)
        disposition = response.headers["content-disposition"]
        assert disposition.startswith("attachment;")
        assert "filename*=UTF-8''Q3%20report.pdf" in disposition

    def test_download_missing_file(self, admin_client):
        from pathlib import Path

        doc = _upload(admin_client).json()
        Path(doc["filePath"]).unlink()
        response = admin_client.get(f"/api/documents/{doc['id']}/download")
        assert response.status_code == 404
        assert response.json()["message"] == "File not found"

    def test_missing_document(self, admin_client):
        assert admin_client.get("/api/documents/unknown").status_code == 404

    def test_update_file_keeps_identity(self, admin_client, user_client):
        doc = _upload(admin_client, name="v1.pdf", category="contracts").json()
        admin_client.post(f"/api/documents/{doc['id']}/share", json={"sharedWith": user_client.user["id"]})

        response = admin_client.put(
            f"/api/documents/{doc['id']}/update",
            files={"file": ("v2.docx", b"PK" + b"1" * 500, DOCX_MIME)},
        )
        assert response.status_code == 200, response.text
        updated = response.json()
        assert updated["id"] == doc["id"]
        assert updated["documentCode"] == doc["documentCode"]
        assert updated["originalName"] == "v2.docx"
        assert updated["fileType"] == "word"
        assert updated["fileSize"] == 502
        assert updated["category"] == "contracts"
        assert len(admin_client.get(f"/api/documents/{doc['id']}/shares").json()) == 1

        update_log = next(
            e for e in admin_client.get("/api/activity-logs").json() if e["action"] == "update"
        )
        assert update_log["details"]["previousName"] == "v1.pdf"
        assert update_log["details"]["newFileName"] == "v2.docx"

    def test_search_and_category(self, admin_client):
        _upload(admin_client, name="alpha-plan.pdf", category="memos")
        _upload(admin_client, name="beta-plan.pdf", category="contracts")
        _upload(admin_client, name="gamma.pdf", category="contracts")

        found = admin_client.get("/api/documents", params={"search": "PLAN"}).json()
        assert sorted(d["name"] for d in found) == ["alpha-plan.pdf", "beta-plan.pdf"]
        both = admin_client.get("/api/documents", params={"search": "plan", "category": "contracts"}).json()
        assert [d["name"] for d in both] == ["beta-plan.pdf"]

    def test_stats(self, admin_client):
        _upload(admin_client, category="memos")
        _upload(admin_client, category="external_letters")
        admin_client.post("/api/documents/create", json={"documentType": "internal_letter", "title": "Hi"})
        stats = admin_client.get("/api/documents/stats").json()
        assert stats["memos"] == 1
        assert stats["letters"] == 2
        assert stats["total"] == 3

    def test_delete_restricted_to_uploader(self, admin_client, user_client):
        doc = _upload(admin_client).json()
        assert user_client.delete(f"/api/documents/{doc['id']}").status_code == 403
        assert admin_client.delete(f"/api/documents/{doc['id']}").json()["success"] is True
        assert admin_client.get(f"/api/documents/{doc['id']}").status_code == 404


class TestTemplates:

    def test_create_memo_and_download(self, admin_client):
        response = admin_client.post(
            "/api/documents/create",
            json={"documentType": "memo", "title": "Q1 Update", "fileType": "word"},
        )
        assert response.status_code == 201, response.text
        doc = response.json()
        assert re.fullmatch(rf"MEMO-{datetime.now(timezone.utc).year}-\d{{3}}", doc["documentCode"])
        assert doc["content"]["title"] == "Q1 Update"
        assert doc["filePath"] == "templates/" + doc["documentCode"]
        assert doc["isTemplate"] is True

        download = admin_client.get(f"/api/documents/{doc['id']}/download")
        assert download.status_code == 200
        assert download.headers["content-type"].startswith("text/plain")
        assert "Q1 Update" in download.text

    def test_codes_increment_per_type(self, admin_client):
        codes = [
            admin_client.post("/api/documents/create", json={"documentType": "memo", "title": f"M{i}"}).json()["documentCode"]
            for i in range(3)
        ]
        numbers = [int(c.rsplit("-", 1)[1]) for c in codes]
        assert numbers == sorted(set(numbers))
        assert numbers[1] == numbers[0] + 1

    def test_create_with_assist_draft(self, admin_client):
        doc = admin_client.post(
            "/api/documents/create",
            json={"documentType": "press_release", "title": "Launch", "useAssist": True},
        ).json()
        assert doc["content"]["body"].startswith("FOR IMMEDIATE RELEASE")

    def test_unknown_document_type(self, admin_client):
        response = admin_client.post("/api/documents/create", json={"documentType": "poem", "title": "X"})
        assert response.status_code == 400

    def test_edit_content_and_pdf(self, admin_client):
        doc = admin_client.post("/api/documents/create", json={"documentType": "contract", "title": "NDA"}).json()
        edited = admin_client.put(
            f"/api/documents/{doc['id']}/content",
            json={"content": {"title": "NDA", "body": "Both parties agree."}},
        )
        assert edited.json()["content"]["body"] == "Both parties agree."

        pdf = admin_client.get(f"/api/documents/{doc['id']}/download/pdf")
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == PDF_MIME
        assert pdf.content.startswith(b"%PDF")
        assert admin_client.post(f"/api/documents/{doc['id']}/export-pdf").content.startswith(b"%PDF")


class TestShares:

    def test_share_lifecycle(self, admin_client, user_client):
        doc = _upload(admin_client, name="shared.pdf").json()
        share = admin_client.post(
            f"/api/documents/{doc['id']}/share",
            json={"sharedWith": user_client.user["id"], "permission": "edit"},
        )
        assert share.status_code == 201
        assert share.json()["permission"] == "edit"

        mine = user_client.get("/api/documents/shared/with-me").json()
        assert [d["id"] for d in mine] == [doc["id"]]

        assert admin_client.delete(f"/api/documents/shares/{share.json()['id']}").status_code == 200
        assert user_client.get("/api/documents/shared/with-me").json() == []

    def test_share_unknown_user(self, admin_client):
        doc = _upload(admin_client).json()
        response = admin_client.post(f"/api/documents/{doc['id']}/share", json={"sharedWith": "ghost"})
        assert response.status_code == 404


class TestAssist:

    def test_generate_template(self, admin_client):
        response = admin_client.post(
            "/api/ai/generate-template",
            json={"documentType": "memo", "title": "Holiday Schedule"},
        )
        assert response.status_code == 200
        assert "RE: Holiday Schedule" in response.json()["template"]

    def test_research_and_improve(self, admin_client):
        research = admin_client.post("/api/ai/research", json={"topic": "hybrid work"}).json()
        assert "hybrid work" in research["research"]
        improved = admin_client.post("/api/ai/improve-content", json={"content": "draft"}).json()
        assert "draft" in improved["improvedContent"]

    def test_requires_login(self, client):
        assert client.post("/api/ai/research", json={"topic": "x"}).status_code == 401


def _on_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TestBlockingCallsOffLoop:
    """Database work in async handlers runs in the threadpool, not on the event loop."""

    def _spy(self, monkeypatch, target, name, seen):
        original = getattr(target, name)

        def wrapper(*args, **kwargs):
            seen.append((name, _on_event_loop()))
            return original(*args, **kwargs)

        monkeypatch.setattr(target, name, wrapper)

    def test_create_document(self, app, admin_client, monkeypatch):
        runtime = app.state.runtime
        seen = []
        self._spy(monkeypatch, runtime.documents, "create_from_template", seen)
        self._spy(monkeypatch, runtime.ledger, "record", seen)

        folder = admin_client.get("/api/folders").json()[0]
        response = admin_client.post(
            "/api/documents/create",
            json={"documentType": "memo", "title": "Off loop", "folderId": folder["id"], "useAssist": True},
        )
        assert response.status_code == 201, response.text
        assert ("create_from_template", False) in seen
        assert ("record", False) in seen
        assert all(on_loop is False for _, on_loop in seen)

    def test_assist_routes(self, app, admin_client, monkeypatch):
        seen = []
        self._spy(monkeypatch, app.state.runtime.ledger, "record", seen)

        admin_client.post("/api/ai/generate-template", json={"documentType": "memo", "title": "T"})
        admin_client.post("/api/ai/research", json={"topic": "t"})
        admin_client.post("/api/ai/improve-content", json={"content": "c"})
        assert seen == [("record", False)] * 3


class TestActivity:

    def test_actions_recorded(self, admin_client):
        doc = _upload(admin_client).json()
        admin_client.get(f"/api/documents/{doc['id']}/download")
        admin_client.get(f"/api/documents/{doc['id']}/download/pdf")

        actions = _actions(admin_client)
        assert actions[:3] == ["download_pdf", "download", "upload"]
        assert "login" in actions

    def test_failed_download_not_recorded(self, admin_client):
        from pathlib import Path

        doc = _upload(admin_client).json()
        Path(doc["filePath"]).unlink()
        admin_client.get(f"/api/documents/{doc['id']}/download")
        assert "download" not in _actions(admin_client)

    def test_verify_access_recorded_both_ways(self, admin_client):
        folder = admin_client.post(
            "/api/folders",
            json={"name": "Vault", "hasSecurityCode": True, "securityCode": "1111"},
        ).json()
        admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "no"})
        admin_client.post(f"/api/folders/{folder['id']}/verify-access", json={"securityCode": "1111"})

        entries = [e for e in admin_client.get("/api/activity-logs").json() if e["action"] == "access"]
        assert [e["details"]["verified"] for e in entries] == [True, False]

    def test_admin_sees_all_users(self, admin_client, user_client):
        user_client.get("/api/documents")
        everyone = {e["userId"] for e in admin_client.get("/api/admin/activity-logs").json()}
        assert user_client.user["id"] in everyone
        own = {e["userId"] for e in user_client.get("/api/activity-logs").json()}
        assert own == {user_client.user["id"]}
        assert user_client.get("/api/admin/activity-logs").status_code == 403

    def test_limit_validated(self, admin_client):
        assert admin_client.get("/api/activity-logs?limit=0").status_code == 400


class TestHealth:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] is True
        assert body["subsystems"]["assist"] == "local"

    def test_request_id_header(self, client):
        assert client.get("/health").headers["x-request-id"].startswith("req_")


def test_content_disposition_non_ascii():
    from docmgr.api.routes.documents import content_disposition

    header = content_disposition('Rapport "été".pdf')
    assert header.startswith('attachment; filename="Rapport \'?t?\'.pdf"')
    assert header.endswith("filename*=UTF-8''Rapport%20%22%C3%A9t%C3%A9%22.pdf")
