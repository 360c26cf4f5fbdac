from quotebot.config import settings

V3_LIB_CACHE_SIZE = settings.lib_cache_size
