from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from core.deps import StorageDep
from files import service
from files.service import Outcome, OutcomeKind

router = APIRouter(tags=["fichiers"])

# Single place where operation outcomes become HTTP status codes
STATUS_BY_OUTCOME: Dict[OutcomeKind, int] = {
    OutcomeKind.OK: 200,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.BACKEND_ERROR: 500,
}


def to_response(outcome: Outcome) -> Response:
    status_code = STATUS_BY_OUTCOME[outcome.kind]
    if outcome.ok and outcome.payload is not None:
        return JSONResponse(
            content=outcome.payload.model_dump(mode="json", by_alias=True),
            status_code=status_code,
        )
    return PlainTextResponse(outcome.message, status_code=status_code)


# Endpoints are sync on purpose: FastAPI runs them in its threadpool, so the
# blocking boto3 client never holds the event loop.

@router.post("/upload")
def upload(storage: StorageDep, fichier: UploadFile = File(...)):
    return to_response(service.upload_file(storage, fichier.filename or "", fichier.file))


@router.get("/fichiers")
def list_files(storage: StorageDep):
    return to_response(service.list_files(storage))


@router.post("/restore/{fichier:path}")
def restore(fichier: str, storage: StorageDep):
    return to_response(service.restore_file(storage, fichier))


@router.get("/statut/{fichier:path}")
def restore_status(fichier: str, storage: StorageDep):
    return to_response(service.restore_status(storage, fichier))


@router.delete("/fichier/{nom:path}")
def soft_delete(nom: str, storage: StorageDep):
    return to_response(service.soft_delete(storage, nom))


@router.get("/url/{fichier:path}")
def presigned_url(fichier: str, storage: StorageDep):
    return to_response(service.presigned_url(storage, fichier))


@router.delete("/fichier-definitif/{nom:path}")
def delete_current_version(nom: str, storage: StorageDep):
    return to_response(service.delete_current_version(storage, nom))


@router.delete("/fichier-all-versions/{nom:path}")
def delete_all_versions(nom: str, storage: StorageDep):
    return to_response(service.delete_all_versions(storage, nom))
