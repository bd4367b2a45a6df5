from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from namaste_sync.core.config import get_settings
from namaste_sync.core.errors import FormatError, IngestionRejectedError
from namaste_sync.core.log_config import configure_logging
from namaste_sync.schemas.audit import ActorContext
from namaste_sync.schemas.ingestion import BulkUploadResult
from namaste_sync.services.terminology_service import build_terminology_service

logger = logging.getLogger(__name__)


async def load_mappings(csv_path: str, *, persist: bool = True) -> BulkUploadResult:
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Mapping CSV file not found: {path}")

    settings = get_settings()
    service = build_terminology_service(settings)
    actor = ActorContext(actor_id=settings.default_actor_id, actor_name=settings.default_actor_name)
    try:
        await service.initialize()
        logger.info("Loading mappings from %s mode=%s", path.as_posix(), service.gateway.mode.value)
        return await service.bulk_upload(path.read_text(encoding="utf-8"), actor=actor, persist=persist)
    finally:
        await service.shutdown()


def main() -> None:
    configure_logging()
    parser = argparse.ArgumentParser(description="Load NAMASTE to ICD-11 mappings from a CSV file.")
    parser.add_argument("--csv", required=True, dest="csv_path", help="Path to the mapping CSV file")
    parser.add_argument("--dry-run", action="store_true", help="Validate only; do not write to the store")
    args = parser.parse_args()

    try:
        result = asyncio.run(load_mappings(args.csv_path, persist=not args.dry_run))
    except (FileNotFoundError, FormatError, IngestionRejectedError) as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc

    for error in result.errors:
        print(f"Line {error.line_number}: {error.message}")
    print(
        f"valid={len(result.records)} errors={len(result.errors)} "
        f"inserted={result.inserted} duplicates={len(result.duplicates)}"
    )


if __name__ == "__main__":
    main()
