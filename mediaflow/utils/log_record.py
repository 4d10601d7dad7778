import json
from datetime import datetime, timezone

from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import BatchRecord


def log_batch_record(record: BatchRecord) -> BatchRecord:
    """
    Structured log line for one batch record.
    Absence records and records carrying an error are logged as warnings.
    """
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event": "batch_record",
        "object": record.object_ref.uri,
        "absent": record.is_absent,
        "attributes": sorted(record.result.attributes) if record.result else [],
        "artifact": str(record.artifact_path) if record.artifact_path else None,
        "error": record.error[:500] if record.error else None,  # Truncate long service errors
    }

    if record.is_absent or record.error:
        log_data["event"] = "batch_record_incomplete"
        logger.warning(json.dumps(log_data))
    else:
        logger.info(json.dumps(log_data))

    return record
