# ==================== BOOKINGS/STATE_MACHINE.PY ====================
from .models import Booking
from utils.exceptions import Forbidden, IllegalTransition, InvalidInput

BOOKING_TRANSITIONS = {
    Booking.PENDING: {Booking.CONFIRMED, Booking.CANCELLED},
    Booking.CONFIRMED: {Booking.COMPLETED, Booking.CANCELLED},
    Booking.COMPLETED: set(),
    Booking.CANCELLED: set(),
}

# Who may move a booking into each status. SYSTEM means no user actor:
# the scheduled completion sweep.
RENTER = 'renter'
OWNER = 'owner'
SYSTEM = 'system'
TRANSITION_ACTORS = {
    Booking.CONFIRMED: OWNER,
    Booking.CANCELLED: RENTER,
    Booking.COMPLETED: SYSTEM,
}


def can_transition(current, target):
    return target in BOOKING_TRANSITIONS.get(current, set())


def actor_roles(booking, user):
    """Roles ``user`` holds on ``booking``; a None user is the system"""
    if user is None:
        return {SYSTEM}
    roles = set()
    if user.pk == booking.parking_space.owner_id:
        roles.add(OWNER)
    if user.pk == booking.renter_id:
        roles.add(RENTER)
    return roles


def check_transition(booking, target, user=None):
    """Raise unless ``user`` may move ``booking`` to ``target``.

    Order of checks: unknown status, then state legality, then authorization.
    Nothing is written here.
    """
    if target not in BOOKING_TRANSITIONS:
        raise InvalidInput(f"Unknown booking status '{target}'")

    if not can_transition(booking.status, target):
        raise IllegalTransition(f"Cannot change booking from {booking.status} to {target}")

    if TRANSITION_ACTORS[target] not in actor_roles(booking, user):
        if target == Booking.CONFIRMED:
            raise Forbidden('Only the space owner can confirm bookings')
        if target == Booking.CANCELLED:
            raise Forbidden('Only the renter who made the booking can cancel it')
        raise Forbidden('Bookings are completed automatically after they end')
