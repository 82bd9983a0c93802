import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from clinicrecords.application.collections import CLINICS
from clinicrecords.application.ports.document_store import DocumentStore
from clinicrecords.application.services.audit_log_writer import AuditLogWriter
from clinicrecords.application.services.prescription_workflow import PrescriptionWorkflowEngine
from clinicrecords.core.config import get_settings
from clinicrecords.domain.errors import DomainError

logger = logging.getLogger("clinicrecords")


async def _sweep_once(
    store: DocumentStore,
    engine: PrescriptionWorkflowEngine,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Perform a single sweep over every clinic, expiring prescriptions past their
    validity window. Returns the number expired per clinic.
    """
    cutoff = now or datetime.now(timezone.utc)
    clinics = await store.query(CLINICS)
    expired_by_clinic: Dict[str, int] = {}

    for clinic in clinics:
        try:
            expired = await engine.sweep_expired(clinic.id, now=cutoff)
        except DomainError as e:
            logger.error(
                "[ExpirySweeper] Sweep failed for clinic=%s: %s (%s)",
                clinic.id,
                e.message,
                e.error_code,
            )
            continue
        if expired:
            logger.info("[ExpirySweeper] Expired %d prescriptions clinic=%s", expired, clinic.id)
        expired_by_clinic[clinic.id] = expired

    logger.info(
        "[ExpirySweeper] Sweep complete clinics=%d expired=%d",
        len(clinics),
        sum(expired_by_clinic.values()),
    )
    return expired_by_clinic


async def run_expiry_sweeper_forever(store: DocumentStore) -> None:
    """
    Run the expiry sweep in a loop, controlled by PRESCRIPTION_* settings.
    """
    settings = get_settings()
    if not settings.prescription.expiry_sweep_enabled:
        logger.info("[ExpirySweeper] Disabled via PRESCRIPTION_EXPIRY_SWEEP_ENABLED")
        return

    interval = max(30, settings.prescription.expiry_sweep_interval_seconds)
    audit = AuditLogWriter(store, mirror_to_app_log=settings.audit.mirror_to_app_log)
    engine = PrescriptionWorkflowEngine(store, audit)

    logger.info(
        "[ExpirySweeper] Starting (interval=%ss, backend=%s)",
        interval,
        settings.store.backend,
    )

    while True:
        try:
            await _sweep_once(store, engine)
        except Exception as e:  # noqa: BLE001
            logger.error("[ExpirySweeper] Sweep iteration failed: %s", e, exc_info=True)
        await asyncio.sleep(interval)
