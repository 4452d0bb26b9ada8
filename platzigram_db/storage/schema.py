import logging

from platzigram_db.storage.dynamodb import StorageConnection, PARTITION_KEY

log = logging.getLogger(__name__)

IMAGES_TABLE = "images"
USERS_TABLE = "users"

class SchemaInitializer:
    """
        Ensures the database, tables and indexes exist. Every structure is
        checked before it is created, so running it again is a no-op.
    """
    def __init__(self, database_name: str):
        self.database_name = database_name

    async def run(self, conn: StorageConnection) -> StorageConnection:
        db = self.database_name

        if db not in await conn.list_databases():
            await conn.create_database(db)

        tables = await conn.list_tables(db)
        if IMAGES_TABLE not in tables:
            await conn.create_table(db, IMAGES_TABLE)
            await conn.create_index(db, IMAGES_TABLE, "createdAt", hash_key=PARTITION_KEY, range_key="createdAt")
            await conn.index_wait(db, IMAGES_TABLE)
            # many images share a userId
            await conn.create_index(db, IMAGES_TABLE, "userId", range_key="createdAt")
            await conn.index_wait(db, IMAGES_TABLE)

        if USERS_TABLE not in tables:
            await conn.create_table(db, USERS_TABLE)
            await conn.create_index(db, USERS_TABLE, "username")
            await conn.index_wait(db, USERS_TABLE)

        log.debug("Schema for database %s is ready", db)
        return conn
