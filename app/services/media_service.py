"""
MediaService: downloads WhatsApp media and re-hosts it in Supabase Storage so
reports can reference a stable public URL.

WhatsApp media is a two-step fetch: GET /{media_id} returns a short-lived
signed URL, then that URL is downloaded with the same bearer token.
"""

import logging
import mimetypes
import os
from typing import Optional

import requests

from app.exceptions import MediaDownloadError

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "report-images"


class MediaService:

    def __init__(self, whatsapp_service, supabase_client, bucket: str = None):
        self.whatsapp = whatsapp_service
        self.client = supabase_client
        self.bucket = bucket or os.getenv("SUPABASE_STORAGE_BUCKET", DEFAULT_BUCKET)

    def store_media(self, media_id: str, mime_type: str, sender_id: str) -> Optional[str]:
        """
        Descarga el media de WhatsApp, lo sube al bucket y retorna la URL pública.
        Retorna None si cualquier paso falla (se registra, no se reintenta).
        """
        if not self.client:
            logger.error("Supabase client not initialized - no se puede guardar media")
            return None

        try:
            content, resolved_mime = self._download(media_id)
            mime_type = mime_type or resolved_mime or "application/octet-stream"
            path = f"{self._folder(sender_id)}{media_id}{self._extension(mime_type)}"
            public_url = self._upload(path, content, mime_type)
        except MediaDownloadError as e:
            logger.error("Error procesando media %s: %s", media_id, e)
            return None

        logger.info("Media %s guardado en %s", media_id, public_url)
        return public_url

    def public_prefix(self, sender_id: str) -> Optional[str]:
        """Public URL of the sender's folder in the bucket; every image stored for them starts with it."""
        if not self.client:
            return None
        folder = self._folder(sender_id)
        # some storage clients append a query string, so resolve a file path and cut after the folder
        url = self.client.storage.from_(self.bucket).get_public_url(f"{folder}_")
        idx = url.rfind(folder)
        if idx == -1:
            return None
        return url[:idx + len(folder)]

    def is_stored_image(self, url: str, sender_id: str) -> bool:
        """True if `url` is a file directly inside the sender's folder."""
        prefix = self.public_prefix(sender_id)
        if not prefix or not url or not url.startswith(prefix):
            return False
        name = url[len(prefix):]
        return bool(name) and "/" not in name and ".." not in name

    @staticmethod
    def _folder(sender_id: str) -> str:
        return f"whatsapp/{sender_id}/"

    def _download(self, media_id: str) -> tuple[bytes, str]:
        headers = {'Authorization': f'Bearer {self.whatsapp.access_token}'}
        timeout = self.whatsapp.timeout

        try:
            meta = requests.get(self.whatsapp.graph_url(media_id), headers=headers, timeout=timeout)
            meta.raise_for_status()
            info = meta.json()

            media_url = info.get("url")
            if not media_url:
                raise MediaDownloadError(f"media {media_id} sin URL de descarga")

            binary = requests.get(media_url, headers=headers, timeout=timeout)
            binary.raise_for_status()
        except requests.RequestException as e:
            raise MediaDownloadError(f"descarga fallida: {e}") from e

        return binary.content, info.get("mime_type", "")

    def _upload(self, path: str, content: bytes, mime_type: str) -> str:
        storage = self.client.storage.from_(self.bucket)
        try:
            storage.upload(path, content, {"content-type": mime_type, "upsert": "true"})
            return storage.get_public_url(path)
        except Exception as e:
            raise MediaDownloadError(f"subida a storage fallida: {e}") from e

    @staticmethod
    def _extension(mime_type: str) -> str:
        base = mime_type.split(";")[0].strip()
        if base == "image/jpeg":
            return ".jpg"
        return mimetypes.guess_extension(base) or ""
