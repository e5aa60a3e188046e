"""
Main Orchestrator for Every Rand

This module ties together the configured components:
1. Document store (Google Sheets, or in-memory for local runs)
2. Session provider (email/password accounts in the same store)
3. Budget ledger (one per interactive session)

DESIGN DECISION: Nothing here is global. The store is built once per
process; each interactive session gets its own provider and ledger, and
the ledger receives both explicitly.
"""

from typing import Optional

import structlog

from every_rand.auth import AccountSessionProvider
from every_rand.config import get_settings
from every_rand.ledger import BudgetLedger
from every_rand.ledger.budget_ledger import WriteFailureCallback
from every_rand.services.storage import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
)


logger = structlog.get_logger(__name__)


def create_store(use_storage: bool = True) -> tuple[DocumentStore, Optional[GoogleSheetsClient]]:
    """
    Build the document store named by the settings.

    Args:
        use_storage: Whether to use the configured durable backend.
                    Set to False to run entirely in memory.

    Returns:
        (store, sheets_client) - the client is None for the in-memory store
    """
    app_settings = get_settings().app

    if use_storage and app_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            _ = sheets_client.settings
            return GoogleSheetsDocumentStore(sheets_client), sheets_client
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    return InMemoryDocumentStore(), None


def create_session_components(
    store: DocumentStore,
    on_write_failed: Optional[WriteFailureCallback] = None,
) -> tuple[AccountSessionProvider, BudgetLedger]:
    """
    Build the provider and ledger for one interactive session.

    Returns:
        (session_provider, ledger)
    """
    app_settings = get_settings().app

    provider = AccountSessionProvider(
        store,
        min_password_length=app_settings.min_password_length,
    )
    ledger = BudgetLedger(
        store,
        provider,
        rollover_groups=app_settings.rollover_groups_set,
        on_write_failed=on_write_failed,
    )
    return provider, ledger
