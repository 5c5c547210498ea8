"""
Data Export / Import
====================

Whole-store JSON backups:

    {"version": 1, "exportedAt": "...", "stores": {"matters": [...], ...}}

Import validates every record before writing anything, rewrites legacy
task statuses (Pending -> Todo, Completed -> Done) and upserts by id.
Each store is written in its own transaction, so a failure leaves that
store as it was; there is no rollback across stores.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from . import schemas
from .errors import RecordValidationError
from .store import STORE_NAMES, RecordStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1


def export_records(store: RecordStore) -> Dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "exportedAt": datetime.utcnow().isoformat(),
        "stores": {
            name: [record.to_wire() for record in store.get_all(name)]
            for name in STORE_NAMES
        },
    }


def migrate_legacy_task(raw: Mapping[str, Any]) -> Dict[str, Any]:
    data = dict(raw)
    status = data.get("status")
    if status in schemas.LEGACY_TASK_STATUSES:
        data["status"] = schemas.LEGACY_TASK_STATUSES[status]
    return data


def import_records(store: RecordStore, payload: Mapping[str, Any], replace: bool = False) -> Dict[str, int]:
    """
    Load an export payload. With `replace=True` every store present in the
    payload is cleared first. Returns records written per store.
    """
    version = payload.get("version")
    if version != EXPORT_VERSION:
        raise RecordValidationError("import", {"version": f"Unsupported export version: {version!r}"})

    stores = payload.get("stores")
    if not isinstance(stores, Mapping):
        raise RecordValidationError("import", {"stores": "Expected an object of store name to records"})

    validated: Dict[str, List[schemas.Record]] = {}
    errors: Dict[str, str] = {}
    for name, raw_records in stores.items():
        spec = store.spec(name)
        if not isinstance(raw_records, list):
            errors[name] = "Expected a list of records"
            continue
        records = []
        for i, raw in enumerate(raw_records):
            if name == "tasks" and isinstance(raw, Mapping):
                raw = migrate_legacy_task(raw)
            try:
                records.append(spec.record_type.model_validate(raw))
            except ValidationError as e:
                for field, message in schemas.validation_errors(e).items():
                    errors[f"{name}[{i}].{field}"] = message
        validated[name] = records

    if errors:
        raise RecordValidationError("import", errors)

    counts: Dict[str, int] = {}
    for name, records in validated.items():
        counts[name] = len(store.put_many(name, records, replace=replace, touch=False))

    logger.info(f"Imported {sum(counts.values())} records ({counts})")
    return counts
