"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .redis_client import get_redis, close_redis, RedisClient
from .paystack_client import PaystackGateway

__all__ = ['get_redis', 'close_redis', 'RedisClient', 'PaystackGateway']
