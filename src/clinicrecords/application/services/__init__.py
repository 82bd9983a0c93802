"""
Application services: audit log, version store, record manager and
prescription workflow.
"""

from .audit_log_writer import AuditLogWriter
from .prescription_workflow import PrescriptionWorkflowEngine
from .record_manager import RecordManager
from .version_store import VersionStore

__all__ = ["AuditLogWriter", "PrescriptionWorkflowEngine", "RecordManager", "VersionStore"]
