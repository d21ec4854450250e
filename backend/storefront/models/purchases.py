from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class Purchase(db.Model):
    """
    Append-only purchase ledger entry.

    price_cents is the price paid, copied from the item inside the purchase
    transaction. Later price changes never touch committed purchases.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_user_purchased", "user_id", "purchased_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    price_cents = db.Column(db.BigInteger, nullable=False)
    purchased_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User", backref=db.backref("purchases", lazy=True))
    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_id": self.item_id,
            "price_cents": self.price_cents,
            "purchased_at": to_utc_z(self.purchased_at),
        }
