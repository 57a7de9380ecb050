from datetime import datetime
from models.db import db

TIME_SLOTS = ("breakfast", "lunch", "dinner", "snacks")

class DonationSlot(db.Model):
    __tablename__ = "donation_slots"

    id = db.Column(db.Integer, primary_key=True)

    monastery_id = db.Column(db.Integer, db.ForeignKey("monasteries.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    time_slot = db.Column(db.String(20), nullable=False)

    capacity = db.Column(db.Integer, nullable=False)
    # Cache of the committed sum; rewritten from the bookings aggregate on every booking write
    committed_servings = db.Column(db.Integer, nullable=False, default=0)

    special_requirements = db.Column(db.Text, nullable=True)
    is_available = db.Column(db.Boolean, default=True, nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    monastery = db.relationship("Monastery", back_populates="slots")

    __table_args__ = (
        # One slot per monastery, day and meal
        db.UniqueConstraint("monastery_id", "date", "time_slot", name="uq_monastery_slot_time"),
    )
