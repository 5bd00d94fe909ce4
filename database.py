from motor.motor_asyncio import AsyncIOMotorClient
from config import settings

_client: AsyncIOMotorClient | None = None


async def get_db():
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.MONGODB_URI)
    return _client[settings.MONGODB_DB]


def close_db():
    """Drop the shared client; the next get_db() opens a fresh one."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
