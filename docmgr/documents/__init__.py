"""
docmgr Document & Folder Management.

Folder registry, document registry, upload storage, template content and
PDF export. Uploaded files live in one flat directory
(``documents.upload_dir``); template documents have no bytes on disk.
"""
