import asyncio
import uuid
from contextlib import AsyncExitStack
from decimal import Decimal
from typing import Optional, Dict, Any, List

import aioboto3
from boto3.dynamodb.conditions import Key, ConditionBase
from botocore.exceptions import ClientError
from platzigram_db.settings import Settings
import logging

log = logging.getLogger(__name__)

PRIMARY_KEY = "id"
# Constant per-table attribute used as the hash key of whole-table ordered indexes
PARTITION_KEY = "_table"
TABLE_SEPARATOR = "."

# -------------------------
# DynamoDB connection
# -------------------------
class StorageConnection:
    """
        Driver-level operations against a DynamoDB endpoint.

        DynamoDB has no database object, so a database is the namespace its
        tables share: table ``images`` of database ``platzigram`` is stored as
        ``platzigram.images``. Secondary indexes are named after the attribute
        they are looked up by.
    """
    def __init__(self, resource, client, exit_stack: AsyncExitStack, poll_interval: float = 0.5):
        self.resource = resource
        self.client = client
        self.poll_interval = poll_interval
        self._exit_stack = exit_stack
        self._databases = set()

    @classmethod
    async def open(cls, settings: Settings) -> "StorageConnection":
        session = aioboto3.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
            "endpoint_url": settings.resolved_endpoint_url,
        }

        exit_stack = AsyncExitStack()
        try:
            resource = await exit_stack.enter_async_context(session.resource("dynamodb", **kwargs))
            client = await exit_stack.enter_async_context(session.client("dynamodb", **kwargs))
        except BaseException:
            await exit_stack.aclose()
            raise
        log.info("Initialized DynamoDB resource at %s", kwargs["endpoint_url"])
        return cls(resource, client, exit_stack, poll_interval=settings.index_poll_interval)

    @staticmethod
    def table_name(db: str, table: str) -> str:
        return f"{db}{TABLE_SEPARATOR}{table}"

    async def _table(self, db: str, table: str):
        return await self.resource.Table(self.table_name(db, table))

    async def _table_names(self) -> List[str]:
        names = []
        paginator = self.client.get_paginator("list_tables")
        async for page in paginator.paginate():
            names.extend(page.get("TableNames", []))
        return names

    @classmethod
    def _encode(cls, value: Any) -> Any:
        # the serializer only takes Decimal numbers
        if isinstance(value, float):
            return Decimal(str(value))
        if isinstance(value, dict):
            return {k: cls._encode(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [cls._encode(v) for v in value]
        return value

    @staticmethod
    def _decode(item: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in item.items() if not k.startswith("_")}

    # -------------------------
    # Schema
    # -------------------------
    async def list_databases(self) -> List[str]:
        names = await self._table_names()
        found = {name.split(TABLE_SEPARATOR, 1)[0] for name in names if TABLE_SEPARATOR in name}
        return sorted(found | self._databases)

    async def create_database(self, db: str) -> Dict[str, int]:
        # Nothing to create server side; the namespace exists once it holds a table
        self._databases.add(db)
        log.info("Created database %s", db)
        return {"dbs_created": 1}

    async def list_tables(self, db: str) -> List[str]:
        prefix = f"{db}{TABLE_SEPARATOR}"
        return [name[len(prefix):] for name in await self._table_names() if name.startswith(prefix)]

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    async def create_table(self, db: str, table: str) -> Dict[str, int]:
        name = self.table_name(db, table)
        await self.client.create_table(
            TableName=name,
            KeySchema=[{"AttributeName": PRIMARY_KEY, "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": PRIMARY_KEY, "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        waiter = self.client.get_waiter("table_exists")
        await waiter.wait(TableName=name, WaiterConfig={"Delay": 1, "MaxAttempts": 60})
        log.info("Created table %s", name)
        return {"tables_created": 1}

    async def create_index(
        self,
        db: str,
        table: str,
        index: str,
        hash_key: Optional[str] = None,
        range_key: Optional[str] = None,
    ) -> Dict[str, int]:
        """
            Creates a global secondary index. Indexes are non-unique, so any
            number of records may share a key. The hash key defaults to the
            attribute the index is named after.
        """
        name = self.table_name(db, table)
        key_schema = [{"AttributeName": hash_key or index, "KeyType": "HASH"}]
        if range_key:
            key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})

        # UpdateTable wants the definitions of every key attribute, old and new
        description = await self.client.describe_table(TableName=name)
        definitions = {d["AttributeName"]: d for d in description["Table"]["AttributeDefinitions"]}
        for key in key_schema:
            definitions.setdefault(key["AttributeName"], {"AttributeName": key["AttributeName"], "AttributeType": "S"})

        await self.client.update_table(
            TableName=name,
            AttributeDefinitions=list(definitions.values()),
            GlobalSecondaryIndexUpdates=[
                {
                    "Create": {
                        "IndexName": index,
                        "KeySchema": key_schema,
                        "Projection": {"ProjectionType": "ALL"},
                    }
                }
            ],
        )
        log.info("Created index %s on %s", index, name)
        return {"created": 1}

    async def index_wait(self, db: str, table: str) -> List[str]:
        """Suspends until the table and all of its secondary indexes are ACTIVE."""
        name = self.table_name(db, table)
        while True:
            description = (await self.client.describe_table(TableName=name))["Table"]
            indexes = description.get("GlobalSecondaryIndexes", [])
            pending = [i["IndexName"] for i in indexes if i.get("IndexStatus", "ACTIVE") != "ACTIVE"]
            if description.get("TableStatus") == "ACTIVE" and not pending:
                return [i["IndexName"] for i in indexes]
            log.debug("Waiting for indexes %s on %s", pending, name)
            await asyncio.sleep(self.poll_interval)

    # -------------------------
    # Documents
    # -------------------------
    async def insert(self, db: str, table: str, item: Dict[str, Any]) -> Dict[str, Any]:
        """
            Inserts one document, generating its key when it has none.
            Write errors are reported in the result, not raised.
        """
        document = self._encode(dict(item))
        generated_keys = []
        if document.get(PRIMARY_KEY) is None:
            document[PRIMARY_KEY] = str(uuid.uuid4())
            generated_keys.append(document[PRIMARY_KEY])
        document[PARTITION_KEY] = table

        t = await self._table(db, table)
        try:
            await t.put_item(
                Item=document,
                ConditionExpression="attribute_not_exists(#pk)",
                ExpressionAttributeNames={"#pk": PRIMARY_KEY},
            )
        except TypeError as e:
            # values the serializer cannot represent, e.g. NaN
            log.debug("Insert into %s rejected: %s", table, e)
            return {"inserted": 0, "errors": 1, "first_error": str(e), "generated_keys": []}
        except ClientError as e:
            error = e.response.get("Error", {})
            log.debug("Insert into %s rejected: %s", table, error)
            return {
                "inserted": 0,
                "errors": 1,
                "first_error": error.get("Message") or str(e),
                "generated_keys": [],
            }
        log.debug("Inserted %s into %s", document[PRIMARY_KEY], table)
        return {"inserted": 1, "errors": 0, "generated_keys": generated_keys}

    async def get(self, db: str, table: str, key: str) -> Optional[Dict[str, Any]]:
        t = await self._table(db, table)
        resp = await t.get_item(Key={PRIMARY_KEY: key}, ConsistentRead=True)
        item = resp.get("Item")
        return self._decode(item) if item else None

    async def update(
        self,
        db: str,
        table: str,
        key: str,
        changes: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
            Sets ``changes`` and atomically adds ``increments`` on an existing
            document. Returns the updated document, or None when there is no
            document at ``key``.
        """
        names = {"#pk": PRIMARY_KEY}
        values = {}
        sets, adds = [], []
        for i, (field, value) in enumerate((changes or {}).items()):
            names[f"#s{i}"] = field
            values[f":s{i}"] = self._encode(value)
            sets.append(f"#s{i} = :s{i}")
        for i, (field, amount) in enumerate((increments or {}).items()):
            names[f"#a{i}"] = field
            values[f":a{i}"] = self._encode(amount)
            adds.append(f"#a{i} :a{i}")

        expression = []
        if sets:
            expression.append("SET " + ", ".join(sets))
        if adds:
            expression.append("ADD " + ", ".join(adds))
        if not expression:
            return await self.get(db, table, key)

        t = await self._table(db, table)
        try:
            resp = await t.update_item(
                Key={PRIMARY_KEY: key},
                UpdateExpression=" ".join(expression),
                ConditionExpression="attribute_exists(#pk)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return None
            raise
        return self._decode(resp["Attributes"])

    # -------------------------
    # Queries
    # -------------------------
    async def _collect(self, operation, **kwargs) -> List[Dict[str, Any]]:
        items = []
        while True:
            resp = await operation(**kwargs)
            items.extend(self._decode(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    async def get_all(self, db: str, table: str, value: Any, index: str, descending: bool = True) -> List[Dict[str, Any]]:
        """Returns every document whose ``index`` attribute equals ``value``, in index order."""
        t = await self._table(db, table)
        return await self._collect(
            t.query,
            IndexName=index,
            KeyConditionExpression=Key(index).eq(value),
            ScanIndexForward=not descending,
        )

    async def order_by(self, db: str, table: str, index: str, descending: bool = True) -> List[Dict[str, Any]]:
        """Returns the whole table ordered by a whole-table index."""
        t = await self._table(db, table)
        return await self._collect(
            t.query,
            IndexName=index,
            KeyConditionExpression=Key(PARTITION_KEY).eq(table),
            ScanIndexForward=not descending,
        )

    async def filter(
        self,
        db: str,
        table: str,
        condition: ConditionBase,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        """Full table scan keeping documents that match ``condition``."""
        t = await self._table(db, table)
        items = await self._collect(t.scan, FilterExpression=condition)
        if order_by:
            items.sort(key=lambda item: item.get(order_by) or "", reverse=descending)
        return items

    async def close(self):
        await self._exit_stack.aclose()
        log.info("Closed DynamoDB resource")
