"""
Blob storage for uploaded page images

Files are written under UPLOAD_DIR and served back by the API's static mount,
which gives every stored page a public URL.
"""
import os
import re
import uuid
import asyncio
import logging
from datetime import datetime

logger = logging.getLogger(__name__)

class StorageService:
    def __init__(self, upload_dir: str, public_base_url: str, prefix: str = "documents", mount_path: str = "/uploads"):
        self.upload_dir = upload_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.prefix = prefix
        self.mount_path = mount_path.rstrip("/")
        os.makedirs(os.path.join(upload_dir, prefix), exist_ok=True)

    @staticmethod
    def safe_name(filename: str) -> str:
        return re.sub(r"[^a-zA-Z0-9.-]", "_", filename or "page")

    def storage_path(self, filename: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{self.prefix}/{timestamp}-{uuid.uuid4().hex[:8]}-{self.safe_name(filename)}"

    def public_url(self, storage_path: str) -> str:
        return f"{self.public_base_url}{self.mount_path}/{storage_path}"

    def _write(self, storage_path: str, data: bytes):
        file_path = os.path.join(self.upload_dir, storage_path)
        with open(file_path, "wb") as buffer:
            buffer.write(data)

    async def upload(self, filename: str, data: bytes, content_type: str) -> str:
        """Store one blob and return its public URL"""
        storage_path = self.storage_path(filename)
        await asyncio.to_thread(self._write, storage_path, data)
        logger.info(f"Stored {content_type} blob: {storage_path} ({len(data) / 1024:.1f} KB)")
        return self.public_url(storage_path)
