from typing import List

from spacegun.modules.api import Image, ImageParams, NoParams, TagsParams
from spacegun.modules.dispatcher import OperationRegistry

from .repository import ImageRepository

LIST = "images.list"
TAGS = "images.tags"
IMAGE = "images.image"


def declare(registry: OperationRegistry) -> None:
    """Declare image operations (all layers)."""
    registry.declare(LIST, NoParams, List[str])
    registry.declare(TAGS, TagsParams, List[str])
    registry.declare(IMAGE, ImageParams, Image)


class ImagesModule:
    """Binds image operations to an image gateway."""

    def __init__(self, repository: ImageRepository):
        self.repository = repository

    def bind(self, registry: OperationRegistry) -> None:
        declare(registry)
        registry.bind(LIST, self.list)
        registry.bind(TAGS, self.tags)
        registry.bind(IMAGE, self.image)

    async def list(self, params: NoParams) -> List[str]:
        return await self.repository.list()

    async def tags(self, params: TagsParams) -> List[str]:
        return await self.repository.tags(params.name)

    async def image(self, params: ImageParams) -> Image:
        return await self.repository.image(params.name, params.tag)
