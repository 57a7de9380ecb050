from datetime import datetime
from models.db import db

class GuestProfile(db.Model):
    __tablename__ = "guest_profiles"

    id = db.Column(db.Integer, primary_key=True)
    monastery_id = db.Column(db.Integer, db.ForeignKey("monasteries.id"), nullable=False, index=True)

    phone = db.Column(db.String(30), nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("monastery_id", "phone", name="uq_guest_phone_per_monastery"),
    )
