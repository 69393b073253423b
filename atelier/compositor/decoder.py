"""Turns image payload strings into RGBA bitmaps.

Payloads are ``data:`` URIs or bare base64. Local file paths and http(s)
URLs are read only when the decoder is built with ``allow_paths`` or
``allow_remote``; otherwise they fail like any undecodable payload.

Successful decodes are cached and failed payloads remembered, both keyed by
the sha256 of the payload string, so an unchanged stack never decodes twice
and a broken payload is not retried until it is replaced.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import io
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Set
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image, UnidentifiedImageError

from atelier.common.errors import DecodeFailure
from atelier.config import runtime_config

logger = logging.getLogger(__name__)

_MAX_PATH_LENGTH = 1024
HTTP_TIMEOUT_SECONDS = 15.0


def payload_key(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _decode_data_uri(payload: str) -> bytes:
    header, sep, data = payload.partition(",")
    if not sep:
        raise DecodeFailure("Malformed data URI (missing comma)")
    if header.endswith(";base64"):
        return base64.b64decode(data, validate=True)
    return unquote_to_bytes(data)


def _open_image(raw: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(raw))
    img.load()
    return img.convert("RGBA")


class ImageDecoder:
    def __init__(
        self,
        cache_size: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        allow_paths: bool = False,
        allow_remote: bool = False,
    ) -> None:
        self.allow_paths = allow_paths
        self.allow_remote = allow_remote
        self.cache_size = cache_size or runtime_config.get_decode_cache_size()
        self._http_client = http_client
        self._cache: "OrderedDict[str, Image.Image]" = OrderedDict()
        self._failed: Set[str] = set()

    def cached(self, payload: str) -> Optional[Image.Image]:
        key = payload_key(payload)
        img = self._cache.get(key)
        if img is not None:
            self._cache.move_to_end(key)
        return img

    def is_known_failure(self, payload: str) -> bool:
        return payload_key(payload) in self._failed

    def forget(self, payload: str) -> None:
        key = payload_key(payload)
        self._cache.pop(key, None)
        self._failed.discard(key)

    async def decode(self, payload: str) -> Image.Image:
        key = payload_key(payload)
        if key in self._failed:
            raise DecodeFailure("Payload previously failed to decode", details={"payload_key": key})
        hit = self.cached(payload)
        if hit is not None:
            return hit
        try:
            raw = await self._read_payload(payload)
            img = await asyncio.to_thread(_open_image, raw)
        except DecodeFailure as exc:
            self._remember_failure(key, exc)
            raise
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            binascii.Error,
            httpx.HTTPError,
        ) as exc:
            failure = DecodeFailure(f"Could not decode image payload: {exc}", details={"payload_key": key})
            self._remember_failure(key, failure)
            raise failure from exc
        self._store(key, img)
        return img

    def _remember_failure(self, key: str, exc: DecodeFailure) -> None:
        self._failed.add(key)
        exc.details.setdefault("payload_key", key)
        logger.warning("Image decode failed (%s): %s", key[:12], exc.message)

    def _store(self, key: str, img: Image.Image) -> None:
        self._cache[key] = img
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    async def _read_payload(self, payload: str) -> bytes:
        text = payload.strip()
        if text.startswith("data:"):
            return _decode_data_uri(text)
        if text.startswith(("http://", "https://")):
            if not self.allow_remote:
                raise DecodeFailure("Remote image payloads are disabled")
            return await self._fetch(text)
        if self.allow_paths and len(text) <= _MAX_PATH_LENGTH:
            path = Path(text)
            try:
                is_file = path.is_file()
            except OSError:
                is_file = False
            if is_file:
                return await asyncio.to_thread(path.read_bytes)
        return base64.b64decode(text, validate=True)

    async def _fetch(self, url: str) -> bytes:
        if self._http_client is not None:
            resp = await self._http_client.get(url)
            resp.raise_for_status()
            return resp.content
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.content


__all__ = ["ImageDecoder", "payload_key"]
