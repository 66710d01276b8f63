"""Connectivity check for the MongoDB identity store.
Run this after starting MongoDB (python -m backend.check_mongo) to verify Motor
can reach it and the users collection has its unique indexes.
"""
import asyncio
import sys

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from .config import Settings
from .errors import StorageError
from .identity import MongoIdentityStore
from .logger import configure_logging


async def main(settings: Settings = None) -> int:
    settings = settings or Settings.from_env()
    log = configure_logging(settings.log_level)
    log.info('using MONGODB_URI=%s db=%s', settings.mongo_url, settings.mongo_db)
    client = AsyncIOMotorClient(settings.mongo_url, serverSelectionTimeoutMS=5000)
    try:
        store = MongoIdentityStore(client[settings.mongo_db]['users'])
        await store.ensure_indexes()
        count = await store.users.count_documents({})
        log.info('connected to MongoDB, %d user(s) stored', count)
        return 0
    except (StorageError, PyMongoError):
        log.error('connection failed')
        return 1
    finally:
        client.close()


if __name__ == '__main__':
    sys.exit(asyncio.run(main()))
