from datetime import datetime, timezone
from typing import Any, Dict, List, Union
import logging
from pydantic import ValidationError
from boto3.dynamodb.conditions import Attr

from platzigram_db.storage.connection import ConnectionManager
from platzigram_db.storage.schema import IMAGES_TABLE
from platzigram_db.image_service.models import Image
from platzigram_db.exceptions import SchemaError, ImageNotFoundError, wrap_storage_errors
from platzigram_db.codec import encode, decode
from platzigram_db.tags import extract_tags, normalize

log = logging.getLogger(__name__)

class ImageRepository:
    """Create, read, list, filter and like operations over image records."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    @property
    def db(self) -> str:
        return self.connections.settings.database_name

    async def save_image(self, image: Union[Image, Dict[str, Any]]) -> Image:
        """
            Saves a new image and returns it as stored.

            Tags are extracted from the description here, once. The public id
            is derived from the key the engine generates, so it is written in
            a second round trip after the insert.
        """
        conn = await self.connections.connection()
        try:
            image = Image.model_validate(image) if isinstance(image, dict) else image.model_copy()
        except ValidationError as e:
            raise SchemaError(str(e)) from e
        image.created_at = datetime.now(timezone.utc)
        image.tags = extract_tags(image.description)

        with wrap_storage_errors("save image"):
            result = await conn.insert(self.db, IMAGES_TABLE, image.to_item())
            if result["errors"] > 0:
                log.error("Image insert rejected: %s", result["first_error"])
                raise SchemaError(result["first_error"])

            image_id = result["generated_keys"][0]
            await conn.update(self.db, IMAGES_TABLE, image_id, changes={"publicId": encode(image_id)})
            created = await conn.get(self.db, IMAGES_TABLE, image_id)

        log.info("Saved image %s", created["publicId"])
        return Image.model_validate(created)

    def _image_key(self, public_id: str) -> str:
        try:
            return decode(public_id)
        except ValueError:
            raise ImageNotFoundError(public_id)

    async def get_image(self, public_id: str) -> Image:
        """Gets an image by its public id."""
        conn = await self.connections.connection()
        image_id = self._image_key(public_id)
        with wrap_storage_errors("get image"):
            item = await conn.get(self.db, IMAGES_TABLE, image_id)
        if not item:
            raise ImageNotFoundError(public_id)
        return Image.model_validate(item)

    async def like_image(self, public_id: str) -> Image:
        """Marks an image liked and adds one like, atomically on the engine side."""
        conn = await self.connections.connection()
        image_id = self._image_key(public_id)
        with wrap_storage_errors("like image"):
            item = await conn.update(
                self.db,
                IMAGES_TABLE,
                image_id,
                changes={"liked": True},
                increments={"likes": 1},
            )
        if not item:
            raise ImageNotFoundError(public_id)
        log.debug("Liked image %s (%s likes)", public_id, item.get("likes"))
        return Image.model_validate(item)

    async def get_images(self) -> List[Image]:
        """Lists every image, newest first."""
        conn = await self.connections.connection()
        with wrap_storage_errors("fetch images"):
            items = await conn.order_by(self.db, IMAGES_TABLE, index="createdAt")
        return [Image.model_validate(item) for item in items]

    async def get_images_by_user(self, user_id: str) -> List[Image]:
        """Lists the images of one user, newest first."""
        conn = await self.connections.connection()
        with wrap_storage_errors("fetch images by user"):
            await conn.index_wait(self.db, IMAGES_TABLE)
            items = await conn.get_all(self.db, IMAGES_TABLE, user_id, index="userId")
        return [Image.model_validate(item) for item in items]

    async def get_images_by_tag(self, tag: str) -> List[Image]:
        """
            Lists the images carrying ``tag``, newest first.

            Tags live in a list attribute with no index over its elements, so
            this scans the whole table.
        """
        conn = await self.connections.connection()
        tag = normalize(tag)
        if not tag:
            return []
        with wrap_storage_errors("fetch images by tag"):
            await conn.index_wait(self.db, IMAGES_TABLE)
            items = await conn.filter(
                self.db,
                IMAGES_TABLE,
                Attr("tags").contains(tag),
                order_by="createdAt",
            )
        return [Image.model_validate(item) for item in items]
