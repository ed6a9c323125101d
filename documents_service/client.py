"""Async HTTP client for the Documents Service API."""
import re
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

import httpx

from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:4000"

_FILENAME_STAR_RE = re.compile(r"filename\*=([\w-]+)'[^']*'([^;\s]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename="((?:[^"\\]|\\.)*)"', re.IGNORECASE)

def filename_from_disposition(header: str, default: str = "download") -> str:
    """Prefer the RFC 5987 ``filename*`` value, then the quoted ``filename``."""
    match = _FILENAME_STAR_RE.search(header)
    if match:
        return unquote(match.group(2), encoding=match.group(1))
    match = _FILENAME_RE.search(header)
    if match:
        return re.sub(r"\\(.)", r"\1", match.group(1))
    return default

class DocumentsApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{status_code} {code}: {message}")

class DocumentsClient:
    """Thin wrapper over ``httpx.AsyncClient``.

    Use as an async context manager, or pass an existing ``client`` (for
    example one bound to an ``httpx.ASGITransport``) which is then left open.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "DocumentsClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        logger.debug(f"{method} {url}")
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request to {url} failed: {str(e)}")
            raise
        if response.is_error:
            raise self._error_from(response)
        return response

    @staticmethod
    def _error_from(response: httpx.Response) -> DocumentsApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return DocumentsApiError(
            status_code=response.status_code,
            code=body.get("code", "HTTP_ERROR"),
            message=body.get("message", response.text),
            details=body.get("details"),
        )

    async def health(self) -> Dict[str, Any]:
        return (await self._request("GET", "/health")).json()

    async def list_items(
        self,
        parent_id: Optional[str] = None,
        q: Optional[str] = None,
        item_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {"parentId": parent_id, "q": q, "type": item_type, "limit": limit, "offset": offset}
        params = {k: v for k, v in params.items() if v is not None}
        return (await self._request("GET", "/items", params=params)).json()

    async def get_item(self, item_id: str) -> Dict[str, Any]:
        return (await self._request("GET", f"/items/{item_id}")).json()

    async def create_folder(self, name: str, created_by: str, parent_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {"name": name, "createdBy": created_by}
        if parent_id:
            payload["parentId"] = parent_id
        return (await self._request("POST", "/items/folders", json=payload)).json()

    async def create_document(
        self,
        name: str,
        created_by: str,
        parent_id: Optional[str] = None,
        file_size_bytes: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name, "createdBy": created_by}
        if parent_id:
            payload["parentId"] = parent_id
        if file_size_bytes is not None:
            payload["fileSizeBytes"] = file_size_bytes
        return (await self._request("POST", "/items/documents", json=payload)).json()

    async def upload_file(
        self,
        filename: str,
        content: Union[bytes, BinaryIO],
        created_by: Optional[str] = None,
        name: Optional[str] = None,
        parent_id: Optional[str] = None,
        content_type: str = "application/octet-stream",
    ) -> Dict[str, Any]:
        data = {}
        if name:
            data["name"] = name
        if parent_id:
            data["parentId"] = parent_id
        if created_by:
            data["createdBy"] = created_by
        files = {"file": (filename, content, content_type)}
        return (await self._request("POST", "/upload", data=data, files=files)).json()

    async def download_file(self, item_id: str) -> Tuple[str, bytes]:
        response = await self._request("GET", f"/upload/{item_id}/download")
        filename = filename_from_disposition(response.headers.get("content-disposition", ""))
        return filename, response.content

    async def delete_item(self, item_id: str) -> Dict[str, Any]:
        return (await self._request("DELETE", f"/items/{item_id}")).json()
