"""Image gateway interface following Black Box Design principles."""
from typing import List, Protocol

from spacegun.modules.api import Image


class ImageRepository(Protocol):
    """Protocol for image registries - allows swappable implementations."""

    async def list(self) -> List[str]:
        """Names of all images in the registry."""
        ...

    async def tags(self, name: str) -> List[str]:
        ...

    async def image(self, name: str, tag: str) -> Image:
        """Resolve a tag into a full image reference with its metadata."""
        ...
