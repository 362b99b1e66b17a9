"""
Main Orchestrator for Allowance Ledger

This module ties together the ledger store and the adapters it writes
through, built from settings.

DESIGN DECISION: The device-local file is always used. Cloud storage
and HTTP replication are added on top when they are configured, and a
missing or broken cloud configuration degrades to local-only instead of
preventing the ledger from starting. This mirrors the original app,
which fell back to on-device storage whenever iCloud was unavailable.
"""

from typing import Optional

from allowance_ledger.audit import AuditLogger
from allowance_ledger.config import Settings, get_settings
from allowance_ledger.ledger import LedgerStore
from allowance_ledger.models.account import new_id
from allowance_ledger.services.replication import (
    HttpReplication,
    ReplicationAdapter,
)
from allowance_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsPersistence,
    LayeredPersistence,
    LocalFilePersistence,
    PersistenceAdapter,
)


def create_persistence(
    settings: Settings,
    audit_logger: AuditLogger,
    use_cloud: Optional[bool] = None,
) -> PersistenceAdapter:
    """
    Build the snapshot store.

    Args:
        use_cloud: Whether to try Google Sheets ahead of the local file.
                   Defaults to the LEDGER_USE_CLOUD setting.
    """
    ledger_settings = settings.ledger
    local = LocalFilePersistence(ledger_settings.snapshot_path)

    if use_cloud is None:
        use_cloud = ledger_settings.use_cloud
    if not use_cloud:
        return local

    try:
        client = GoogleSheetsClient(settings.google_sheets)
        cloud = GoogleSheetsPersistence(client, storage_key=ledger_settings.storage_key)
    except Exception as e:
        # Cloud not configured - continue with the local file only
        audit_logger.log_error(
            error_type="cloud_storage_unavailable",
            error_message=str(e),
        )
        return local

    return LayeredPersistence(cloud, local)


def create_replication(
    settings: Settings,
    audit_logger: AuditLogger,
) -> Optional[ReplicationAdapter]:
    """Build HTTP replication if any peers are configured."""
    replication_settings = settings.replication
    if not replication_settings.peer_url_list:
        return None

    try:
        return HttpReplication(settings=replication_settings)
    except Exception as e:
        audit_logger.log_error(
            error_type="replication_unavailable",
            error_message=str(e),
        )
        return None


def resolve_device_id(settings: Settings, audit_logger: AuditLogger) -> str:
    """
    Return this device's id.

    LEDGER_DEVICE_ID wins. Otherwise an id is generated on first run and
    kept next to the snapshot file, so peers and this device keep
    recognising its snapshots after a restart.
    """
    ledger_settings = settings.ledger
    if ledger_settings.device_id:
        return ledger_settings.device_id

    path = ledger_settings.device_id_path
    try:
        if path.exists():
            device_id = path.read_text(encoding="utf-8").strip()
            if device_id:
                return device_id
        device_id = new_id()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(device_id, encoding="utf-8")
        return device_id
    except OSError as e:
        # Unwritable data directory - this run gets a throwaway id
        audit_logger.log_error(
            error_type="device_id_unavailable",
            error_message=str(e),
            details={"path": str(path)},
        )
        return new_id()


def create_ledger(
    use_cloud: Optional[bool] = None,
    replication: Optional[ReplicationAdapter] = None,
    settings: Optional[Settings] = None,
) -> LedgerStore:
    """
    Factory function to create a ready-to-start ledger store.

    Args:
        use_cloud: Whether to store snapshots in Google Sheets as well as
                   on this device. Defaults to the LEDGER_USE_CLOUD setting.
        replication: Replication adapter to use instead of the one built
                     from REPLICATION_* settings.
        settings: Settings to build from. Defaults to get_settings().

    Returns:
        A LedgerStore; call await store.start() before use.
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()

    persistence = create_persistence(settings, audit_logger, use_cloud=use_cloud)
    if replication is None:
        replication = create_replication(settings, audit_logger)

    return LedgerStore(
        persistence=persistence,
        replication=replication,
        settings=settings.ledger,
        audit_logger=audit_logger,
        device_id=resolve_device_id(settings, audit_logger),
    )
