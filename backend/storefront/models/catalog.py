from __future__ import annotations

from ..extensions import db


class Item(db.Model):
    """
    Purchasable item. Reference data: the catalog is maintained elsewhere,
    the ledger only reads (and row-locks) the price.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.BigInteger, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
        }
