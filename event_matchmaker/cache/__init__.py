"""
Advisory TTL cache.

Modules
-------
stores : InMemoryCacheStore, RedisCacheStore, build_cache_store().
layer  : CacheLayer (namespaced get / set / delete / increment /
         get_or_compute) + JsonCodec / PydanticCodec + CacheNamespace.
"""
