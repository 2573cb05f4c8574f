from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from typing import Any, Dict, Optional
import os
import shutil
import uuid

from planparser.api.deps import get_services
from planparser.core.errors import (
    JobFailedError,
    JobNotFoundError,
    JobNotReadyError,
    QueueFullError,
    UnsupportedDocumentError,
)
from planparser.core.logging import get_logger
from planparser.services.container import ParserServices
from planparser.services.extraction.service import detect_document_type

logger = get_logger("parse_api")

router = APIRouter()


@router.post("/upload", status_code=202)
async def upload_document(
    file: UploadFile = File(...),
    content_type: Optional[str] = Form(None),
    services: ParserServices = Depends(get_services),
):
    filename = os.path.basename(file.filename or "document")
    declared_type = content_type or file.content_type
    try:
        detect_document_type(filename, declared_type)
    except UnsupportedDocumentError as e:
        raise HTTPException(status_code=400, detail=e.message)

    upload_dir = services.settings.UPLOAD_DIR
    os.makedirs(upload_dir, exist_ok=True)
    file_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}_{filename}")

    with open(file_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    try:
        job_id = services.pool.submit(filename, file_path, declared_type)
    except QueueFullError as e:
        os.remove(file_path)
        raise HTTPException(status_code=503, detail=e.message)

    return {"jobId": job_id, "status": "queued"}


@router.get("/status/{job_id}")
async def get_job_status(job_id: str, services: ParserServices = Depends(get_services)):
    try:
        status = services.store.get_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {
        "jobId": status["job_id"],
        "status": status["status"],
        "progress": status["progress"],
        "error": status["error"],
    }


@router.get("/result/{job_id}")
async def get_job_result(job_id: str, services: ParserServices = Depends(get_services)) -> Dict[str, Any]:
    try:
        result = services.store.get_result(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except JobNotReadyError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except JobFailedError as e:
        return {"success": False, "error": {"message": e.message}}

    return {
        "success": True,
        "projectStructure": result.transformed_data.model_dump(mode="json") if result.transformed_data else None,
        "status": result.status,
        "confidenceScore": result.confidence_score,
        "validationErrors": result.validation_errors,
        "processingNotes": result.processing_notes,
        "tokensUsed": result.tokens_used.model_dump(),
        "validation": result.validation.model_dump(mode="json") if result.validation else None,
    }


@router.post("/cancel/{job_id}")
async def cancel_job(job_id: str, services: ParserServices = Depends(get_services)):
    try:
        cancelled = services.store.cancel(job_id)
        status = services.store.get_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {"jobId": job_id, "cancelled": cancelled, "status": status["status"]}
