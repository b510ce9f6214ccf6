"""
External image host.

Articles reference hosted images by URL plus the host's opaque asset id.
The production client speaks Cloudinary's signed upload API over httpx;
tests substitute any object satisfying :class:`AssetHost`.
"""
from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx
from fastapi import Request

from readstack.config import Settings
from readstack.errors import AssetHostError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedAsset:
    url: str
    public_id: str


class AssetHost(Protocol):
    async def upload(self, data: bytes, filename: str, content_type: str) -> UploadedAsset:
        ...

    async def delete(self, public_id: str) -> None:
        ...


class CloudinaryAssetHost:
    """Signed upload/destroy against the Cloudinary REST API."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        *,
        folder: str = "",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self._base_url = f"https://api.cloudinary.com/v1_1/{cloud_name}/image"
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=2),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryAssetHost":
        return cls(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
            timeout=settings.ASSET_HOST_TIMEOUT,
        )

    def sign(self, params: dict[str, str]) -> str:
        """SHA-1 signature over the sorted ``key=value`` pairs followed by the API secret."""
        to_sign = "&".join(f"{k}={v}" for k, v in sorted(params.items()) if v)
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {**params, "api_key": self.api_key, "signature": self.sign(params)}

    async def upload(self, data: bytes, filename: str, content_type: str) -> UploadedAsset:
        form = self._signed({"folder": self.folder} if self.folder else {})
        try:
            resp = await self._client.post(
                f"{self._base_url}/upload",
                data=form,
                files={"file": (filename, data, content_type)},
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AssetHostError("Image upload failed") from exc

        try:
            return UploadedAsset(url=body["secure_url"], public_id=body["public_id"])
        except KeyError as exc:
            raise AssetHostError("Image host returned an unexpected response") from exc

    async def delete(self, public_id: str) -> None:
        form = self._signed({"public_id": public_id})
        try:
            resp = await self._client.post(f"{self._base_url}/destroy", data=form)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise AssetHostError(f"Could not delete asset {public_id}") from exc
        logger.info("Deleted hosted asset %s", public_id)

    async def aclose(self) -> None:
        await self._client.aclose()


def get_asset_host(request: Request) -> AssetHost:
    return request.app.state.asset_host
