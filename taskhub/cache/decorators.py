from functools import wraps
from typing import Callable, Iterable


def async_cached(
    key_builder: Callable[..., str],
    ttl_setting: str,
    scopes: Callable[..., Iterable[str]] | None = None,
):
    """
    Read-through caching for async service methods.

    The decorated method's instance must expose ``cache`` (a CacheLayer),
    ``settings`` and ``enable_cache``. key_builder and scopes receive the
    same args/kwargs as the method, minus ``self``. ttl_setting names the
    Settings attribute holding the entry's TTL. The wrapped method always
    returns the JSON form of its result, cached or not.

    Example:
      @async_cached(lambda tag_id: f"tag:{tag_id}", "tag_cache_ttl")
      async def find_one(self, tag_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            # loader closure calls the original function; hits and misses
            # both hand back the JSON form
            async def loader():
                value = await fn(self, *args, **kwargs)
                if hasattr(value, "model_dump"):
                    return value.model_dump(mode="json")
                return value

            if not self.enable_cache:
                return await loader()

            key = key_builder(*args, **kwargs)
            return await self.cache.get(
                key,
                loader=loader,
                ttl=getattr(self.settings, ttl_setting),
                scopes=scopes(*args, **kwargs) if scopes else (),
            )

        return wrapper

    return decorator
