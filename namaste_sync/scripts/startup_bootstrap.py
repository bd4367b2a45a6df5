from __future__ import annotations

import asyncio
import logging

from namaste_sync.core.config import get_settings
from namaste_sync.core.log_config import configure_logging
from namaste_sync.repositories.remote_store import RemoteMappingStore
from namaste_sync.repositories.store import StoreMode
from namaste_sync.services.terminology_service import build_terminology_service

logger = logging.getLogger(__name__)


async def bootstrap() -> StoreMode:
    settings = get_settings()
    service = build_terminology_service(settings)
    remote = RemoteMappingStore(service.engine)
    try:
        try:
            await remote.create_schema()
        except Exception as exc:
            logger.warning("Could not create remote schema (%s); the local fallback store will be used", exc)

        mode = await service.gateway.initialize()
        logger.info("Bootstrap complete mode=%s mappings=%s", mode.value, await service.gateway.count())
        return mode
    finally:
        await service.shutdown()


def main() -> None:
    configure_logging()
    try:
        asyncio.run(bootstrap())
    except Exception:
        # Never crash the startup process due to bootstrap tasks.
        logger.exception("Startup bootstrap terminated with unexpected error")


if __name__ == "__main__":
    main()
