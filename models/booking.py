from datetime import datetime
from models.db import db

PENDING = "pending"
MONASTERY_APPROVED = "monastery_approved"
CONFIRMED = "confirmed"
DELIVERED = "delivered"
NOT_DELIVERED = "not_delivered"
CANCELLED = "cancelled"

BOOKING_STATUSES = (PENDING, MONASTERY_APPROVED, CONFIRMED, DELIVERED, NOT_DELIVERED, CANCELLED)

# Statuses whose servings count against slot capacity
CAPACITY_STATUSES = (PENDING, MONASTERY_APPROVED, CONFIRMED, DELIVERED)

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("donation_slots.id"), nullable=False, index=True)
    # NULL only for guest bookings entered by a monastery admin
    donor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    guest_profile_id = db.Column(db.Integer, db.ForeignKey("guest_profiles.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    food_type = db.Column(db.String(160), nullable=False)
    estimated_servings = db.Column(db.Integer, nullable=False)
    contact_phone = db.Column(db.String(30), nullable=True)
    special_notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    monastery_approved_at = db.Column(db.DateTime, nullable=True)
    monastery_approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)

    delivery_confirmed_at = db.Column(db.DateTime, nullable=True)
    delivery_confirmed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    delivery_status = db.Column(db.String(20), nullable=True)  # received, not_received
    delivery_notes = db.Column(db.Text, nullable=True)

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    slot = db.relationship("DonationSlot")
    guest_profile = db.relationship("GuestProfile")

    __table_args__ = (
        db.CheckConstraint("estimated_servings > 0", name="ck_booking_servings_positive"),
    )

    @property
    def is_guest(self) -> bool:
        return self.donor_id is None and self.guest_profile_id is not None
