from functools import lru_cache

from hrmatch.services.cache import ContentAddressableCache, InMemoryCacheStore, MongoCacheStore
from hrmatch.services.inference import build_inference_client
from hrmatch.services.orchestrator import MatchOrchestrator
from hrmatch.utils.logging_config import get_logger
from hrmatch.utils.settings import get_settings

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_cache_store():
    settings = get_settings().cache
    if settings.backend == "mongo":
        try:
            return MongoCacheStore.from_uri(settings.mongo_uri, settings.db_name, settings.collection)
        except Exception as e:
            # caching is an optimization; run uncached-in-process rather than fail
            logger.error(f"Failed to initialize MongoDB cache store, using in-memory cache: {e}")
    logger.info("Using in-memory cache store")
    return InMemoryCacheStore()


@lru_cache(maxsize=1)
def get_cache() -> ContentAddressableCache:
    return ContentAddressableCache(get_cache_store())


@lru_cache(maxsize=1)
def get_orchestrator() -> MatchOrchestrator:
    settings = get_settings()
    return MatchOrchestrator(build_inference_client(settings.inference), get_cache(), settings)


async def init_indexes():
    """Index initialization for the cache collection."""
    store = get_cache_store()
    if isinstance(store, MongoCacheStore):
        logger.info("Starting cache index initialization")
        await store.init_indexes()
        logger.info("Cache index initialization completed")
