"""Unit tests for docmgr.documents.folders — FolderService."""

import io

import pytest

from docmgr.engine.errors import NotFound, ValidationError

PDF_MIME = "application/pdf"


class TestCreate:

    def test_plain_folder(self, folders, basic_user):
        folder = folders.create(basic_user.id, "  Finance ", description="Money")
        assert folder.name == "Finance"
        assert folder.has_security_code is False
        assert folder.security_code is None
        assert folder.created_by == basic_user.id

    def test_protected_folder(self, folders, basic_user):
        folder = folders.create(basic_user.id, "HR", has_security_code=True, security_code="s3cret")
        assert folder.has_security_code is True
        assert folders.is_protected(folder.id) is True

    def test_code_dropped_when_unprotected(self, folders, basic_user):
        folder = folders.create(basic_user.id, "Open", security_code="ignored")
        assert folder.security_code is None

    def test_protected_requires_code(self, folders, basic_user):
        with pytest.raises(ValidationError, match="Security code is required"):
            folders.create(basic_user.id, "HR", has_security_code=True)

    def test_name_required(self, folders, basic_user):
        with pytest.raises(ValidationError):
            folders.create(basic_user.id, "   ")


class TestVerifyAccess:

    def test_exact_match(self, folders, basic_user):
        folder = folders.create(basic_user.id, "HR", has_security_code=True, security_code="Abc123")
        assert folders.verify_access(folder.id, "Abc123") is True
        assert folders.verify_access(folder.id, "abc123") is False
        assert folders.verify_access(folder.id, "") is False
        assert folders.verify_access(folder.id, None) is False

    def test_unprotected_always_passes(self, folders, basic_user):
        folder = folders.create(basic_user.id, "Open")
        assert folders.verify_access(folder.id, None) is True

    def test_missing_folder(self, folders):
        with pytest.raises(NotFound, match="Folder not found"):
            folders.verify_access("missing", "x")


class TestReads:

    def test_list_newest_first(self, folders, basic_user):
        a = folders.create(basic_user.id, "A")
        b = folders.create(basic_user.id, "B")
        assert [f.id for f in folders.list_all()] == [b.id, a.id]

    def test_is_protected_missing(self, folders):
        assert folders.is_protected("missing") is False
        assert folders.is_protected(None) is False

    def test_list_documents(self, folders, documents, basic_user):
        folder = folders.create(basic_user.id, "Contracts")
        other = folders.create(basic_user.id, "Other")
        first = documents.upload(io.BytesIO(b"%PDF-1"), "a.pdf", PDF_MIME, basic_user.id,
                                 category="contracts", folder_id=folder.id)
        second = documents.upload(io.BytesIO(b"%PDF-2"), "b.pdf", PDF_MIME, basic_user.id,
                                  category="contracts", folder_id=folder.id)
        documents.upload(io.BytesIO(b"%PDF-3"), "c.pdf", PDF_MIME, basic_user.id,
                         category="contracts", folder_id=other.id)

        listed = folders.list_documents(folder.id)
        assert [d.id for d in listed] == [second.id, first.id]

    def test_list_documents_missing_folder(self, folders):
        with pytest.raises(NotFound):
            folders.list_documents("missing")
