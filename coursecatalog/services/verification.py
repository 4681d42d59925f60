from typing import Dict, List

from sqlalchemy.ext.asyncio import async_sessionmaker

from coursecatalog.models import orm
from coursecatalog.schemas.results import COUNT_ENTITIES, EntityCount
from coursecatalog.services.audit import ImportLog
from coursecatalog.services.store import CatalogStore


async def verify_counts(
    session_factory: async_sessionmaker,
    counts: Dict[str, EntityCount],
    log: ImportLog,
) -> List[str]:
    """Re-count every table after commit; return the names of entities that came up short."""
    log.info("VERIFY", "Verifying import integrity...")
    short: List[str] = []
    async with session_factory() as session:
        store = CatalogStore(session)
        for key, (name, model_name) in COUNT_ENTITIES.items():
            count = counts[key]
            count.verified = await store.count(getattr(orm, model_name))
            if count.verified < count.expected:
                log.error("VERIFY", f"{name}: {count.verified} < {count.expected} MISSING CONTENT!")
                short.append(name)
            else:
                log.success("VERIFY", f"{name}: {count.verified} (expected {count.expected})")
    return short
