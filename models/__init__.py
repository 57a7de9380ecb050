from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .monastery import Monastery
from .slot import DonationSlot
from .guest_profile import GuestProfile
from .booking import Booking
from .booking_transition import BookingTransition
