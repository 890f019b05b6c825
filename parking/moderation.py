# ==================== PARKING/MODERATION.PY ====================
import logging

from utils.exceptions import InvalidInput
from .models import ParkingSpace

logger = logging.getLogger(__name__)


def moderate_space(space, moderation_status, moderator=None):
    """Record a moderation decision; only APPROVED spaces show up in discovery"""
    valid = dict(ParkingSpace.MODERATION_STATUS_CHOICES)
    if moderation_status not in valid:
        raise InvalidInput(f"Unknown moderation status '{moderation_status}'")

    space.moderation_status = moderation_status
    space.save(update_fields=['moderation_status', 'updated_at'])
    logger.info(
        f"Parking space {space.id} marked {moderation_status}"
        + (f" by {moderator.username}" if moderator is not None else "")
    )
    return space
