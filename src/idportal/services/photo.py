"""Service for updating profile photos."""

from __future__ import annotations

import base64

from structlog.stdlib import BoundLogger

from ..config import Config
from ..constants import PHOTO_CONTENT_TYPES
from ..exceptions import (
    InvalidPhotoError,
    PhotoDimensionsError,
    PhotoEncodingError,
    PhotoTooLargeError,
)
from ..images import encode_photo
from ..models.directory import AttributeChange
from ..models.identity import VerifiedCaller
from .attributes import DirectoryAttributeWriter
from .profile import ProfileService

__all__ = ["PhotoService"]


class PhotoService:
    """Store a new profile photo for the logged-in user in the directory.

    Parameters
    ----------
    config
        idportal configuration.
    writer
        Writer for directory entries.
    profile_service
        Service used to record the change in the audit log.
    logger
        Logger to use.
    """

    def __init__(
        self,
        config: Config,
        writer: DirectoryAttributeWriter,
        profile_service: ProfileService,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._writer = writer
        self._profile = profile_service
        self._logger = logger

    async def update_photo(
        self, caller: VerifiedCaller, data: bytes, content_type: str | None
    ) -> str:
        """Replace the profile photo of the caller.

        Parameters
        ----------
        caller
            Logged-in user.
        data
            Uploaded image.
        content_type
            MIME type claimed by the upload. Only JPEG and PNG are accepted.

        Returns
        -------
        str
            ``data:`` URI of the new thumbnail, for immediate display.

        Raises
        ------
        InvalidPhotoError
            Raised if the upload is not an acceptable image.
        WriteError
            Raised if the directory change failed.
        """
        if not data:
            raise InvalidPhotoError("No image provided")
        if (content_type or "").lower() not in PHOTO_CONTENT_TYPES:
            raise InvalidPhotoError("Only JPEG and PNG images are supported")
        limit = self._config.photo.max_upload_size
        if len(data) > limit:
            msg = f"Image must be smaller than {limit // (1024 * 1024)} MB"
            raise InvalidPhotoError(msg)

        try:
            photo = encode_photo(data, self._config.photo)
        except PhotoDimensionsError as e:
            self._logger.info("Image dimensions too large", error=str(e))
            raise InvalidPhotoError("Image dimensions are too large") from e
        except PhotoTooLargeError as e:
            self._logger.info("Thumbnail too large", error=str(e))
            raise InvalidPhotoError("Image is too complex to store") from e
        except PhotoEncodingError as e:
            self._logger.info("Cannot decode uploaded image", error=str(e))
            raise InvalidPhotoError("Image could not be read") from e

        ldap = self._config.ldap
        changes = [
            AttributeChange.replace(ldap.thumbnail_attr, photo.thumbnail)
        ]
        if ldap.photo_attr:
            original = AttributeChange.replace(ldap.photo_attr, photo.original)
            changes.append(original)
        await self._writer.apply_changes(caller.username, changes, caller)
        await self._profile.record_photo_update(
            caller.username, len(photo.thumbnail)
        )
        self._logger.info(
            "Updated profile photo", thumbnail_size=len(photo.thumbnail)
        )

        encoded = base64.b64encode(photo.thumbnail).decode()
        return f"data:image/jpeg;base64,{encoded}"
