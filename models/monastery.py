from datetime import datetime
from models.db import db

class Monastery(db.Model):
    __tablename__ = "monasteries"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Monastery-wide ceiling; overrides slot capacity when set
    capacity = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    slots = db.relationship("DonationSlot", back_populates="monastery", lazy="dynamic")
