from fastapi import APIRouter, Depends, HTTPException, Request, status, UploadFile, File, Form
from typing import Dict, Optional
import asyncio
import json
import os
import aiofiles
from pathlib import Path
import logging
import re
from datetime import datetime
from sqlalchemy.orm import Session
from rq.exceptions import NoSuchJobError
from slowapi import Limiter
from slowapi.util import get_remote_address
from fintrack.models.schemas import ImportPreview, ImportSummary, ReconciliationSummary
from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
from fintrack.parsers.csv_parser import CsvTransactionParser
from fintrack.config import settings
from fintrack.services.category_reconciler import CategoryReconciler
from fintrack.services.csv_import import import_transactions, suggest_column_map, summarize_errors
from fintrack.services.job_queue import enqueue_import_job, get_job_info
from fintrack.services.llm_classifier import LLMClassificationService, get_classifier_service

router = APIRouter(prefix="/import", tags=["import"])
logger = logging.getLogger(__name__)

# AI-backed endpoints are rate limited per client address
limiter = Limiter(key_func=get_remote_address)

ALLOWED_EXTENSIONS = {'.csv'}
PREVIEW_ROWS = 5


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal.

    Keeps only the base name, strips anything but word characters, spaces,
    dashes and dots, and lower-cases the extension.
    """
    filename = os.path.basename(filename or "")
    filename = filename.replace('..', '').replace('/', '').replace('\\', '')

    name, ext = os.path.splitext(filename)
    name = re.sub(r'[^\w\s\-.]', '', name)
    name = name.replace('.', '_')[:200]

    sanitized = f"{name}{ext.lower()}"
    if not name or '/' in sanitized or '\\' in sanitized or '..' in sanitized:
        raise ValueError("Invalid filename after sanitization")

    return sanitized


def allowed_file(filename: str) -> bool:
    return Path(filename or "").suffix.lower() in ALLOWED_EXTENSIONS


async def read_csv_upload(file: UploadFile) -> str:
    """Validate the upload and return its text."""
    if not allowed_file(file.filename):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File size exceeds maximum allowed size of {settings.MAX_UPLOAD_SIZE / 1024 / 1024}MB"
        )

    if len(content) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is empty"
        )

    try:
        return content.decode('utf-8-sig')
    except UnicodeDecodeError:
        return content.decode('latin-1')


def parse_column_map(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """Form field holding a JSON object of CSV header -> transaction field."""
    if not raw:
        return None
    try:
        column_map = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_map must be a JSON object"
        )
    if not isinstance(column_map, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in column_map.items()
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="column_map must map header names to field names"
        )
    return column_map


def _require_account(db, account_id: str):
    if not db.find_one("accounts", {"id": account_id}):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )


@router.post("/preview", response_model=ImportPreview)
@limiter.limit(settings.AI_RATE_LIMIT)
async def preview_import(
    request: Request,
    file: UploadFile = File(...),
    classifier: LLMClassificationService = Depends(get_classifier_service)
):
    """Parse the upload and ask the LLM for a column mapping the user can correct."""
    content = await read_csv_upload(file)
    parser = CsvTransactionParser(content, file.filename)

    try:
        parsed = parser.parse()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # Ollama calls block; keep them off the event loop
    column_map, mapping_error = await asyncio.to_thread(
        suggest_column_map, parser, parsed["headers"], classifier
    )

    return ImportPreview(
        file_name=file.filename,
        headers=parsed["headers"],
        preview_rows=parsed["rows"][:PREVIEW_ROWS],
        column_map=column_map,
        mapping_error=mapping_error,
    )

@router.post("/transactions", response_model=ImportSummary)
@limiter.limit(settings.AI_RATE_LIMIT)
async def import_transactions_file(
    request: Request,
    file: UploadFile = File(...),
    account_id: str = Form(...),
    column_map: Optional[str] = Form(None),
    reconcile_categories: bool = Form(True),
    session: Session = Depends(get_session),
    classifier: LLMClassificationService = Depends(get_classifier_service)
):
    """Import the upload into an account, then reconcile its categories."""
    db = get_db_service(session)
    _require_account(db, account_id)

    content = await read_csv_upload(file)
    mapping = parse_column_map(column_map)

    try:
        return await asyncio.to_thread(
            _import_and_reconcile,
            db,
            content,
            account_id,
            file.filename,
            mapping,
            reconcile_categories,
            classifier,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _import_and_reconcile(
    db,
    content: str,
    account_id: str,
    file_name: str,
    mapping: Optional[Dict[str, str]],
    reconcile_categories: bool,
    classifier: Optional[LLMClassificationService],
) -> ImportSummary:
    """Blocking part of an import: row writes plus one AI call per unknown label."""
    result = import_transactions(
        db,
        content,
        account_id,
        file_name,
        column_map=mapping,
        classifier=classifier,
    )

    reconciliation = None
    if reconcile_categories and result.imported:
        outcome = CategoryReconciler(db, classifier).reconcile(result.imported)
        reconciliation = ReconciliationSummary(
            transactions_updated=outcome.transactions_updated,
            categories_created=outcome.categories_created,
            decisions=outcome.decisions,
        )

    return ImportSummary(
        file_name=file_name,
        imported_count=result.imported_count,
        error_count=result.error_count,
        errors=result.errors,
        error_summary=summarize_errors(result.errors),
        warnings=result.warnings,
        reconciliation=reconciliation,
    )

@router.post("/jobs")
async def import_transactions_job(
    file: UploadFile = File(...),
    account_id: str = Form(...),
    column_map: Optional[str] = Form(None),
    reconcile_categories: bool = Form(True),
    session: Session = Depends(get_session)
):
    """Save the upload and import it in the background."""
    db = get_db_service(session)
    _require_account(db, account_id)

    content = await read_csv_upload(file)
    mapping = parse_column_map(column_map)

    try:
        sanitized_name = sanitize_filename(file.filename)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid filename: {str(e)}"
        )

    upload_dir = Path(settings.UPLOAD_PATH)
    upload_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    file_path = upload_dir / f"{account_id}_{timestamp}_{sanitized_name}"

    if not file_path.resolve().is_relative_to(upload_dir.resolve()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file path detected"
        )

    async with aiofiles.open(file_path, 'w', encoding='utf-8') as out_file:
        await out_file.write(content)

    job = enqueue_import_job(
        account_id,
        str(file_path),
        file.filename,
        column_map=mapping,
        reconcile_categories=reconcile_categories,
    )

    logger.info(f"Import of {file.filename} queued for account {account_id} with job {job.id}")

    return {
        "message": "File uploaded successfully. Import started.",
        "job_id": job.id,
    }

@router.get("/jobs/{job_id}")
async def get_import_job_status(job_id: str):
    try:
        return get_job_info(job_id)
    except NoSuchJobError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )
