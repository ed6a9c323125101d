import io
from pathlib import Path
from urllib.parse import quote

import pytest
from httpx import AsyncClient

from routers.upload import content_disposition

async def create_folder(client: AsyncClient, name: str, parent_id: str = None):
    payload = {"name": name, "createdBy": "John"}
    if parent_id:
        payload["parentId"] = parent_id
    response = await client.post("/items/folders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()

async def upload(client: AsyncClient, filename: str, content: bytes, content_type: str = "text/plain", **data):
    files = {"file": (filename, io.BytesIO(content), content_type)}
    return await client.post("/upload", files=files, data=data)

@pytest.mark.asyncio
async def test_upload_and_download_report(async_client: AsyncClient, mock_settings, registry):
    finance = await create_folder(async_client, "Finance")
    content = bytes(range(256)) * 4

    response = await upload(
        async_client, "report.pdf", content, "application/pdf", parentId=finance["id"], createdBy="John"
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["type"] == "DOCUMENT"
    assert data["name"] == "report.pdf"
    assert data["parentId"] == finance["id"]
    assert data["fileSizeBytes"] == 1024
    assert data["extension"] == "pdf"
    assert data["mimeType"] == "application/pdf"

    entry = await registry.get(data["id"])
    assert entry.original_name == "report.pdf"
    assert (mock_settings.UPLOAD_DIR / entry.stored_name).read_bytes() == content

    download = await async_client.get(f"/upload/{data['id']}/download")
    assert download.status_code == 200
    assert download.content == content
    assert download.headers["content-type"] == "application/pdf"
    assert "attachment" in download.headers["content-disposition"]
    assert 'filename="report.pdf"' in download.headers["content-disposition"]

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "filename, ascii_name",
    [
        ("Q4 report.pdf", "Q4 report.pdf"),
        ("Отчет 2024.txt", "????? 2024.txt"),
    ],
)
async def test_download_header_carries_both_filename_forms(async_client: AsyncClient, filename, ascii_name):
    uploaded = (await upload(async_client, filename, b"data", createdBy="John")).json()

    download = await async_client.get(f"/upload/{uploaded['id']}/download")

    assert download.status_code == 200
    header = download.headers["content-disposition"]
    assert header.startswith("attachment; ")
    assert f'filename="{ascii_name}"' in header
    assert f"filename*=UTF-8''{quote(filename, safe='')}" in header

@pytest.mark.asyncio
async def test_upload_with_explicit_name_keeps_original_filename_for_download(async_client: AsyncClient):
    response = await upload(async_client, "scan.txt", b"hello", name="Signed contract", createdBy="Jane")

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Signed contract"
    assert data["extension"] == "txt"

    download = await async_client.get(f"/upload/{data['id']}/download")
    assert 'filename="scan.txt"' in download.headers["content-disposition"]

@pytest.mark.asyncio
async def test_upload_without_creator_uses_anonymous(async_client: AsyncClient):
    response = await upload(async_client, "a.txt", b"a")

    assert response.status_code == 201
    assert response.json()["createdBy"] == "Anonymous"

@pytest.mark.asyncio
async def test_upload_without_creator_rejected_when_anonymous_disabled(async_client: AsyncClient, mock_settings, monkeypatch, stored_files):
    monkeypatch.setattr(mock_settings, "ANONYMOUS_CREATOR", "")

    response = await upload(async_client, "a.txt", b"a")

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert stored_files() == []

@pytest.mark.asyncio
async def test_upload_without_file_part(async_client: AsyncClient):
    response = await async_client.post("/upload", data={"createdBy": "John"})

    assert response.status_code == 400
    assert response.json() == {"code": "NO_FILE", "message": "No file uploaded"}

@pytest.mark.asyncio
async def test_upload_to_missing_parent_cleans_up(async_client: AsyncClient, stored_files):
    response = await upload(async_client, "a.txt", b"a", parentId="nonexistent", createdBy="John")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
    assert stored_files() == []

@pytest.mark.asyncio
async def test_upload_under_document_is_invalid_parent(async_client: AsyncClient, stored_files):
    document = (await upload(async_client, "a.txt", b"a", createdBy="John")).json()
    before = stored_files()

    response = await upload(async_client, "b.txt", b"b", parentId=document["id"], createdBy="John")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PARENT"
    assert stored_files() == before

@pytest.mark.asyncio
async def test_upload_duplicate_name_cleans_up(async_client: AsyncClient, stored_files):
    first = await upload(async_client, "a.txt", b"first", createdBy="John")
    assert first.status_code == 201
    before = stored_files()

    second = await upload(async_client, "a.txt", b"second", createdBy="John")

    assert second.status_code == 409
    assert second.json()["code"] == "DUPLICATE_NAME"
    assert stored_files() == before

@pytest.mark.asyncio
async def test_upload_too_large(async_client: AsyncClient, mock_settings, stored_files):
    response = await upload(async_client, "big.bin", b"x" * (mock_settings.MAX_UPLOAD_SIZE_BYTES + 1), createdBy="John")

    assert response.status_code == 413
    assert response.json()["code"] == "FILE_TOO_LARGE"
    assert stored_files() == []
    assert (await async_client.get("/items")).json() == []

@pytest.mark.asyncio
async def test_download_errors(async_client: AsyncClient, registry):
    folder = await create_folder(async_client, "Finance")
    record_only = (await async_client.post("/items/documents", json={"name": "external", "createdBy": "John"})).json()
    uploaded = (await upload(async_client, "a.txt", b"a", createdBy="John")).json()
    entry = await registry.get(uploaded["id"])

    missing = await async_client.get("/upload/does-not-exist/download")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"

    of_folder = await async_client.get(f"/upload/{folder['id']}/download")
    assert of_folder.status_code == 400
    assert of_folder.json()["code"] == "INVALID_TYPE"

    no_record = await async_client.get(f"/upload/{record_only['id']}/download")
    assert no_record.status_code == 404
    assert no_record.json()["code"] == "FILE_NOT_FOUND"

    # Bytes removed behind the registry's back.
    Path(entry.path).unlink()
    gone = await async_client.get(f"/upload/{uploaded['id']}/download")
    assert gone.status_code == 404
    assert gone.json()["code"] == "FILE_NOT_FOUND"

@pytest.mark.asyncio
async def test_delete_document_removes_content(async_client: AsyncClient, registry, stored_files):
    uploaded = (await upload(async_client, "a.txt", b"a", createdBy="John")).json()

    response = await async_client.delete(f"/items/{uploaded['id']}")

    assert response.status_code == 200
    assert response.json()["message"] == "Document deleted successfully"
    assert await registry.get(uploaded["id"]) is None
    assert stored_files() == []

    download = await async_client.get(f"/upload/{uploaded['id']}/download")
    assert download.status_code == 404
    assert download.json()["code"] == "NOT_FOUND"

@pytest.mark.asyncio
async def test_delete_folder_tree_removes_uploaded_descendants(async_client: AsyncClient, registry, stored_files):
    a = await create_folder(async_client, "A")
    b = await create_folder(async_client, "B", parent_id=a["id"])
    d = (await upload(async_client, "d.txt", b"d", parentId=b["id"], createdBy="John")).json()

    response = await async_client.delete(f"/items/{a['id']}")

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 3
    assert (await async_client.get("/items", params={"parentId": a["id"]})).json() == []
    assert (await async_client.get("/items", params={"parentId": b["id"]})).json() == []
    assert (await async_client.get(f"/upload/{d['id']}/download")).status_code == 404
    assert await registry.entries() == []
    assert stored_files() == []

def test_content_disposition_escapes_quotes_and_control_characters():
    assert content_disposition('say "hi"\n.txt') == (
        'attachment; filename="say \\"hi\\"_.txt"; filename*=UTF-8\'\'say%20%22hi%22%0A.txt'
    )
