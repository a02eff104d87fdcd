from joke_factory.client.api_client import ApiClient, ApiError
from joke_factory.client.local_cache import LocalCache
from joke_factory.client.sync import SessionSync

__all__ = ["ApiClient", "ApiError", "LocalCache", "SessionSync"]
