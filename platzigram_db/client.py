"""
    Single entry point wiring one connection to both repositories.
"""
from typing import Any, Dict, List, Optional, Union

from platzigram_db.settings import Settings
from platzigram_db.security import PasswordHasher
from platzigram_db.storage.connection import ConnectionManager
from platzigram_db.image_service.models import Image
from platzigram_db.image_service.service import ImageRepository
from platzigram_db.user_service.models import User
from platzigram_db.user_service.service import UserRepository

class PlatzigramDB:
    """
        Facade over the image and user repositories.

        Usable as an async context manager, which connects on enter and
        disconnects on exit.
    """
    def __init__(self, settings: Optional[Settings] = None, hasher: Optional[PasswordHasher] = None):
        self.connections = ConnectionManager(settings)
        self.images = ImageRepository(self.connections)
        self.users = UserRepository(self.connections, hasher=hasher)

    @property
    def connected(self) -> bool:
        return self.connections.connected

    def connect(self):
        return self.connections.connect()

    async def disconnect(self) -> None:
        await self.connections.disconnect()

    async def __aenter__(self) -> "PlatzigramDB":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self.connected:
            await self.disconnect()

    async def save_image(self, image: Union[Image, Dict[str, Any]]) -> Image:
        return await self.images.save_image(image)

    async def get_image(self, public_id: str) -> Image:
        return await self.images.get_image(public_id)

    async def like_image(self, public_id: str) -> Image:
        return await self.images.like_image(public_id)

    async def get_images(self) -> List[Image]:
        return await self.images.get_images()

    async def get_images_by_user(self, user_id: str) -> List[Image]:
        return await self.images.get_images_by_user(user_id)

    async def get_images_by_tag(self, tag: str) -> List[Image]:
        return await self.images.get_images_by_tag(tag)

    async def save_user(self, user: Union[User, Dict[str, Any]]) -> User:
        return await self.users.save_user(user)

    async def get_user(self, username: str) -> User:
        return await self.users.get_user(username)

    async def authenticate(self, username: str, password: str) -> bool:
        return await self.users.authenticate(username, password)
