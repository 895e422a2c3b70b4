from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from fastapi.responses import FileResponse

from cashsouk.core.settings import settings
from cashsouk.services.storage.adapter import LocalFileSystemAdapter, verify_local_url_signature

router = APIRouter(prefix="/uploads", tags=["uploads"])

# Local storage only. The signed URL is the credential; upload clients do not carry a bearer token.


def _local_adapter(key: str, expires: int, signature: str, method: str) -> LocalFileSystemAdapter:
    if settings.storage_provider != "local":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Local storage is disabled")
    if not verify_local_url_signature(settings.secret_key, key, expires, signature, method=method):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired URL signature")
    return LocalFileSystemAdapter(base_path=settings.local_upload_dir, base_url="")


@router.put("/local-content", summary="Receive a document PUT to a signed local URL")
async def put_local_content(
    request: Request,
    key: str = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
):
    adapter = _local_adapter(key, expires, signature, "PUT")
    content = await request.body()
    if len(content) > settings.max_document_size_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Document too large")
    try:
        adapter.write_file(key, content)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_200_OK)


@router.get("/local-content", summary="Serve a document from a signed local URL")
async def get_local_content(
    key: str = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
):
    adapter = _local_adapter(key, expires, signature, "GET")
    try:
        path = adapter.resolve_path(key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return FileResponse(path, media_type="application/pdf" if path.suffix == ".pdf" else None)
