"""
Docker Registry HTTP API v2 image gateway.

Catalog, tag lists and tag metadata are cached; metadata of a tag is
treated as stable and kept for an hour.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from spacegun.errors import GatewayError
from spacegun.modules.api import Image
from spacegun.modules.cache import TTLCache

logger = logging.getLogger("spacegun.images.docker")

MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MANIFEST_ACCEPT = ", ".join([MANIFEST_V2, OCI_MANIFEST, MANIFEST_LIST_V2, OCI_INDEX])


class DockerImageRepository:
    """Image gateway for a single Docker registry."""

    LIST_TTL = 60
    TAGS_TTL = 60
    IMAGE_TTL = 3600
    CATALOG_PAGE_SIZE = 1000

    def __init__(
        self,
        registry_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize repository.

        Args:
            registry_url: Registry base URL, e.g. https://registry.example.com
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        if "://" not in registry_url:
            registry_url = f"https://{registry_url}"
        self.registry_url = registry_url.rstrip("/")
        parsed = urlparse(self.registry_url)
        self.host = parsed.netloc + parsed.path
        self.timeout = timeout
        self._transport = transport
        self._list_cache: TTLCache[str, List[str]] = TTLCache(self.LIST_TTL)
        self._tags_cache: TTLCache[str, List[str]] = TTLCache(self.TAGS_TTL)
        self._image_cache: TTLCache[tuple, Image] = TTLCache(self.IMAGE_TTL)

    async def list(self) -> List[str]:
        async def fetch() -> List[str]:
            repositories: List[str] = []
            url: Optional[str] = f"{self.registry_url}/v2/_catalog"
            params: Optional[Dict[str, Any]] = {"n": self.CATALOG_PAGE_SIZE}
            while url:
                response = await self._get(url, params=params)
                repositories.extend(self._json(response, url).get("repositories") or [])
                # The next link carries its own query (last, n)
                next_link = response.links.get("next", {}).get("url")
                url = str(response.url.join(next_link)) if next_link else None
                params = None
            return sorted(repositories)

        return await self._list_cache.calculate("catalog", fetch)

    async def tags(self, name: str) -> List[str]:
        async def fetch() -> List[str]:
            data = await self._get_json(f"/v2/{name}/tags/list")
            return data.get("tags") or []

        return await self._tags_cache.calculate(name, fetch)

    async def image(self, name: str, tag: str) -> Image:
        async def fetch() -> Image:
            manifest = await self._get_json(
                f"/v2/{name}/manifests/{tag}",
                headers={"Accept": MANIFEST_ACCEPT},
            )
            return Image.from_url(f"{self.host}/{name}:{tag}", last_updated=await self._created(name, manifest))

        return await self._image_cache.calculate((name, tag), fetch)

    async def _created(self, name: str, manifest: Dict[str, Any]) -> Optional[datetime]:
        """Creation time from the image config blob, None when unavailable."""
        digest = (manifest.get("config") or {}).get("digest")
        if not digest:
            return None
        blob = await self._get_json(f"/v2/{name}/blobs/{digest}")
        created = blob.get("created")
        if not created:
            return None
        try:
            # Registries report nanoseconds, datetime keeps microseconds
            created = re.sub(r"(\.\d{6})\d+", r"\1", created)
            return datetime.fromisoformat(created.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable creation time {created!r} for {name}")
            return None

    async def _get_json(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        """
        GET a registry resource below the registry URL.

        Raises:
            GatewayError: For transport failures, non-2xx answers and invalid JSON
        """
        url = f"{self.registry_url}{path}"
        return self._json(await self._get(url, **kwargs), url)

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport, follow_redirects=True
            ) as client:
                response = await client.get(url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            raise GatewayError(f"Registry request {url} failed: {e.response.status_code}", status=e.response.status_code)
        except httpx.HTTPError as e:
            raise GatewayError(f"Registry request {url} failed: {e}")

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"Registry returned invalid JSON for {url}: {e}")
