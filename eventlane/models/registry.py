# Importing every model registers its table on Base.metadata
from eventlane.models.user_model import User
from eventlane.models.venue_model import Venue
from eventlane.models.booking_model import Booking
from eventlane.models.booking_activity_model import BookingActivity
from eventlane.models.booking_change_request_model import BookingChangeRequest
from eventlane.models.message_model import Message
from eventlane.models.favorite_model import Favorite
from eventlane.models.venue_view_model import VenueView
from eventlane.models.token_blacklist import TokenBlacklist

__all__ = [
    "User",
    "Venue",
    "Booking",
    "BookingActivity",
    "BookingChangeRequest",
    "Message",
    "Favorite",
    "VenueView",
    "TokenBlacklist",
]
