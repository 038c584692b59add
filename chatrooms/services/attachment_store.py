"""
AttachmentStore - disk storage for message attachments.

Uploads are classified by media type, written under a type-specific
directory of MEDIA_ROOT and exposed through the static /media mount:

    <MEDIA_ROOT>/pictures/<unix_ts>-<filename>  ->  <APP_URL>/media/pictures/<unix_ts>-<filename>
    <MEDIA_ROOT>/videos/<unix_ts>-<filename>    ->  <APP_URL>/media/videos/<unix_ts>-<filename>

Anything that is neither an image nor a video is refused.
"""

import logging
import mimetypes
import os
import re
import secrets
import shutil
import time
from typing import BinaryIO, Optional, Tuple
from urllib.parse import quote

from chatrooms.core.config import settings
from chatrooms.core.errors import UnsupportedMediaType

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"

PICTURES_DIR = "pictures"
VIDEOS_DIR = "videos"


def classify(content_type: Optional[str], filename: Optional[str] = None) -> Optional[str]:
    """
    Return the storage directory for a media type, or None if unsupported.

    The declared content type wins; the filename extension is only consulted
    when the client sent no usable type.
    """
    media_type = (content_type or "").lower()
    if not media_type or media_type == "application/octet-stream":
        media_type = (mimetypes.guess_type(filename or "")[0] or "").lower()

    if "image" in media_type:
        return PICTURES_DIR
    if "video" in media_type:
        return VIDEOS_DIR
    return None


def _sanitize_filename(filename: str) -> str:
    # Keep the client's name readable but never let it escape the directory
    name = os.path.basename(filename.replace("\\", "/")).strip()
    name = re.sub(r"[^\w.\- ]", "_", name)
    return name or "upload"


class AttachmentStore:
    """Writes attachments to disk and returns their public URL."""

    def __init__(self, media_root: Optional[str] = None, base_url: Optional[str] = None):
        self.media_root = media_root or settings.MEDIA_ROOT
        self.base_url = (base_url or settings.APP_URL).rstrip("/")

    def ensure_supported(self, content_type: Optional[str], filename: Optional[str]) -> str:
        directory = classify(content_type, filename)
        if directory is None:
            logger.error("Unsupported file type: %s (%s)", content_type, filename)
            raise UnsupportedMediaType()
        return directory

    def store(self, stream: BinaryIO, filename: str, content_type: Optional[str]) -> str:
        """
        Persist an upload.

        Args:
            stream: Readable binary file object positioned at the start
            filename: Client-side filename
            content_type: Declared media type

        Returns:
            Absolute URL of the stored file

        Raises:
            UnsupportedMediaType: neither an image nor a video
        """
        subdir = self.ensure_supported(content_type, filename)

        directory = os.path.join(self.media_root, subdir)
        os.makedirs(directory, exist_ok=True)

        stored_name, out = self._create_unique(directory, _sanitize_filename(filename))
        path = os.path.join(directory, stored_name)
        with out:
            shutil.copyfileobj(stream, out)

        logger.info("Stored attachment %s (%d bytes)", path, os.path.getsize(path))
        return self.url_for(subdir, stored_name)

    def _create_unique(self, directory: str, name: str) -> Tuple[str, BinaryIO]:
        """Open a new file named <unix_ts>-<name>, adding a random token if that name is taken."""
        stored_name = f"{int(time.time())}-{name}"
        while True:
            try:
                return stored_name, open(os.path.join(directory, stored_name), "xb")
            except FileExistsError:
                stored_name = f"{int(time.time())}-{secrets.token_hex(4)}-{name}"

    def url_for(self, subdir: str, stored_name: str) -> str:
        return f"{self.base_url}{MEDIA_URL_PREFIX}/{subdir}/{quote(stored_name)}"
