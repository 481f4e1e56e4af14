import logging
import os
from typing import Dict, Optional

from rq import get_current_job

from fintrack.database.postgres_db import get_db_context
from fintrack.database.db_service import get_db_service
from fintrack.services.category_reconciler import CategoryReconciler
from fintrack.services.csv_import import import_transactions, summarize_errors
from fintrack.services.llm_classifier import get_classifier_service

logger = logging.getLogger(__name__)


def run_import_job(
    account_id: str,
    file_path: str,
    file_name: str,
    column_map: Optional[Dict[str, str]] = None,
    reconcile_categories: bool = True,
):
    """
    Background entry point for CSV imports.

    Runs the import and then the category reconciliation pass. The uploaded
    file is removed once the job ends, whatever the outcome.
    """
    job = get_current_job()

    def update_stage(stage: str, progress: dict = None):
        if job:
            job.meta["stage"] = stage
            if progress:
                job.meta["progress"] = progress
            job.save_meta()

    try:
        with open(file_path, "r", encoding="utf-8-sig") as handle:
            content = handle.read()

        classifier = get_classifier_service()

        with get_db_context() as session:
            db = get_db_service(session)

            if not db.find_one("accounts", {"id": account_id}):
                raise ValueError("Account not found")

            update_stage("importing")
            result = import_transactions(
                db,
                content,
                account_id,
                file_name,
                column_map=column_map,
                classifier=classifier,
            )
            update_stage("imported", {
                "imported_count": result.imported_count,
                "error_count": result.error_count,
            })

            reconciliation = None
            if reconcile_categories and result.imported:
                update_stage("reconciling_categories")
                outcome = CategoryReconciler(db, classifier).reconcile(result.imported)
                reconciliation = {
                    "transactions_updated": outcome.transactions_updated,
                    "categories_created": outcome.categories_created,
                    "decisions": outcome.decisions,
                }

        update_stage("completed")
        return {
            "file_name": file_name,
            "imported_count": result.imported_count,
            "error_count": result.error_count,
            "errors": result.errors,
            "error_summary": summarize_errors(result.errors),
            "warnings": result.warnings,
            "reconciliation": reconciliation,
        }
    finally:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.info(f"Removed uploaded file {file_path}")
