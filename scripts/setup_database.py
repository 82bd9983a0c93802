#!/usr/bin/env python3
"""
Database setup and maintenance script for Clinic Records Core.

This script performs:
1. Index creation for the records, versions, prescriptions and audit collections
2. Database health checks
3. Audit log integrity verification for a clinic

Usage:
    python scripts/setup_database.py --indexes
    python scripts/setup_database.py --health-check
    python scripts/setup_database.py --verify-audit clinic-a
"""

import argparse
import asyncio
import sys
from typing import Any, Dict

# Add the src directory to the Python path
sys.path.insert(0, 'src')

from clinicrecords.adapters.store.mongo_store import MongoDocumentStore
from clinicrecords.application.collections import audit_log_path
from clinicrecords.application.ports.document_store import OrderBy
from clinicrecords.application.services.audit_log_writer import verify_checksum
from clinicrecords.core.config import get_settings


class DatabaseMaintenance:
    """Index setup, health checks and audit verification."""

    def __init__(self):
        self.settings = get_settings()
        if not self.settings.database.uri:
            raise SystemExit("MONGO_URI is not set")
        self.store = MongoDocumentStore.from_settings(self.settings.database)

    async def health_check(self) -> Dict[str, Any]:
        """Count documents and indexes per collection."""
        print("🏥 Performing database health check...")
        db = self.store._db
        collections = await db.list_collection_names()

        health_status: Dict[str, Any] = {"collections": {}}
        for name in ("clinics", "records", "versions", "prescriptions", "logs", "auditLog"):
            if name not in collections:
                health_status["collections"][name] = {"exists": False}
                continue
            indexes = await db[name].list_indexes().to_list(None)
            health_status["collections"][name] = {
                "exists": True,
                "documents": await db[name].count_documents({}),
                "indexes": len(indexes),
            }

        print("📊 Health Check Results:")
        for name, status in health_status["collections"].items():
            print(f"   {name}: {status}")
        return health_status

    async def create_indexes(self) -> None:
        print("🔧 Creating indexes...")
        await self.store.ensure_indexes()
        print("✅ Indexes ensured")

    async def verify_audit(self, clinic_id: str) -> Dict[str, int]:
        """Recompute the checksum of every audit entry of a clinic."""
        print(f"🔍 Verifying audit log of clinic {clinic_id}...")
        entries = await self.store.query(audit_log_path(clinic_id), order_by=[OrderBy("timestamp")])
        tampered = [e.id for e in entries if not verify_checksum(e.data)]

        for entry_id in tampered:
            print(f"   ❌ Checksum mismatch: {entry_id}")
        print(f"✅ Verified {len(entries) - len(tampered)}/{len(entries)} entries")
        return {"total": len(entries), "tampered": len(tampered)}

    async def close(self) -> None:
        await self.store.close()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Clinic Records Core database maintenance")
    parser.add_argument("--indexes", action="store_true", help="Create the collection indexes")
    parser.add_argument("--health-check", action="store_true", help="Report collection status")
    parser.add_argument("--verify-audit", metavar="CLINIC_ID", help="Verify audit log checksums")
    args = parser.parse_args()

    if not (args.indexes or args.health_check or args.verify_audit):
        parser.print_help()
        return 1

    maintenance = DatabaseMaintenance()
    try:
        if args.indexes:
            await maintenance.create_indexes()
        if args.health_check:
            await maintenance.health_check()
        if args.verify_audit:
            result = await maintenance.verify_audit(args.verify_audit)
            if result["tampered"]:
                return 2
    finally:
        await maintenance.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
