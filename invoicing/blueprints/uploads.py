"""Image upload helper shared by the item and company routes."""
import logging

from botocore.exceptions import BotoCoreError, ClientError

from invoicing.exceptions import NetworkFailure, ValidationRejected
from invoicing.services.storage_service import get_storage_service

logger = logging.getLogger(__name__)


def store_image(owner_kind: str, owner_id: int, file) -> str:
    """
    Upload ``file`` and return its object key.

    Raises:
        ValidationRejected: empty, too large or wrong type
        NetworkFailure: the image store refused or could not be reached
    """
    try:
        return get_storage_service().upload_image(owner_kind, owner_id, file)
    except ValueError as e:
        raise ValidationRejected(str(e), {'File': str(e)})
    except (ClientError, BotoCoreError) as e:
        logger.error(f"[STORAGE] Upload of {owner_kind}/{owner_id} failed: {e}")
        raise NetworkFailure('The image store is unavailable, please try again later')


def discard_image(previous_key, new_key) -> None:
    """Remove a replaced image once the new key is committed; failures are only logged."""
    if previous_key and previous_key != new_key:
        if not get_storage_service().delete_file(previous_key):
            logger.warning(f"[STORAGE] Replaced image left behind: {previous_key}")
