# Overview: Service-layer operations for ledger; balances, deposits and purchases.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import InsufficientFunds, InvalidAmount, ItemNotFound, UserNotFound
from ..extensions import db
from ..models import Item, Purchase, User
from storefront.time_utils import utcnow
from .concurrency import lock_for_share, lock_for_update, transaction
"""
Storefront Ledger Invariants (authoritative)

- Money is integer cents everywhere. No floats.
- balance_cents >= 0 for every user at every commit.
- Every balance mutation happens inside concurrency.transaction(); there is
  no read-modify-write of a balance outside it.
- Lock order is fixed: item row (shared) before user row (exclusive).
- A purchase debits the balance and appends its Purchase row in the same
  transaction, or does neither.
- Purchase.price_cents is the price read under lock, never re-derived from
  the item later.
"""


@dataclass(frozen=True)
class PurchaseView:
    """Purchase history line, joined with the names a caller shows."""
    purchase_id: int
    username: str
    item_id: int
    item_name: str
    price_cents: int
    purchased_at: datetime


# Largest value a BIGINT balance column holds
MAX_CENTS = 2 ** 63 - 1


def _validate_amount(amount_cents) -> None:
    # bool is an int subclass; True is not a deposit of one cent
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise InvalidAmount("Amount must be an integer number of cents")
    if amount_cents <= 0:
        raise InvalidAmount("Amount must be positive")
    if amount_cents > MAX_CENTS:
        raise InvalidAmount(f"Amount must be at most {MAX_CENTS} cents")


def get_balance(user_id: int) -> int:
    """Current balance in cents. Raises UserNotFound."""
    balance = db.session.query(User.balance_cents).filter(User.id == user_id).scalar()
    if balance is None:
        raise UserNotFound(user_id)
    return balance


def deposit(user_id: int, amount_cents: int) -> int:
    """
    Credit amount_cents to the user's balance and return the new balance.

    Raises:
        InvalidAmount: amount_cents is not a positive int, or the new balance
            would not fit in a BIGINT (nothing is touched)
        UserNotFound: no such user
        LockTimeout / StoreUnavailable: transaction rolled back
    """
    _validate_amount(amount_cents)

    with transaction():
        user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if not user:
            raise UserNotFound(user_id)

        new_balance = user.balance_cents + amount_cents
        if new_balance > MAX_CENTS:
            raise InvalidAmount("Deposit would overflow the balance")
        user.balance_cents = new_balance

    current_app.logger.info("Deposit of %d cents for user %s", amount_cents, user_id)
    return new_balance


def purchase(user_id: int, item_id: int) -> Purchase:
    """
    Buy one item: debit its current price and record the purchase.

    All-or-nothing:
    1. Read the item price under a shared lock (ItemNotFound)
    2. Read the balance under an exclusive lock (UserNotFound)
    3. balance < price -> InsufficientFunds, nothing changes
    4. Debit the price
    5. Append a Purchase with the price that was debited
    6. Commit; any failure before this rolls back steps 4-5

    Returns the committed Purchase.
    """
    with transaction():
        item = lock_for_share(db.session.query(Item).filter_by(id=item_id)).first()
        if not item:
            raise ItemNotFound(item_id)
        price_cents = item.price_cents

        user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if not user:
            raise UserNotFound(user_id)

        if user.balance_cents < price_cents:
            raise InsufficientFunds(user.balance_cents, price_cents)

        user.balance_cents = user.balance_cents - price_cents

        record = Purchase(
            user_id=user_id,
            item_id=item_id,
            price_cents=price_cents,
            purchased_at=utcnow(),
        )
        db.session.add(record)
        db.session.flush()  # ensures record.id is assigned before commit

    current_app.logger.info(
        "User %s purchased item %s for %d cents", user_id, item_id, price_cents
    )
    return record


def list_purchases(user_id: int) -> list[PurchaseView]:
    """Purchase history for user_id, newest first. Raises UserNotFound."""
    if not db.session.get(User, user_id):
        raise UserNotFound(user_id)

    rows = db.session.query(
        Purchase.id,
        User.username,
        Item.id,
        Item.name,
        Purchase.price_cents,
        Purchase.purchased_at,
    ).join(
        User, User.id == Purchase.user_id
    ).join(
        Item, Item.id == Purchase.item_id
    ).filter(
        Purchase.user_id == user_id
    ).order_by(
        Purchase.purchased_at.desc(), Purchase.id.desc()
    ).all()

    return [PurchaseView(*row) for row in rows]


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if not item:
        raise ItemNotFound(item_id)
    return item


def list_items() -> list[Item]:
    return db.session.query(Item).order_by(Item.id).all()
