"""
Ledger engine tests.

Verifies:
- Deposits credit positive integer cents only
- Purchases debit the snapshotted price and append exactly one record
- A refused or failed purchase changes nothing
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from storefront.errors import (
    InsufficientFunds,
    InvalidAmount,
    ItemNotFound,
    StoreUnavailable,
    UserNotFound,
)
from storefront.extensions import db
from storefront.models import Item, Purchase, User
from storefront.services import ledger_service


def _balance(user_id):
    return ledger_service.get_balance(user_id)


class TestBalance:
    def test_balance(self, rich_user):
        assert _balance(rich_user.id) == 20000

    def test_balance_unknown_user(self, db_session):
        with pytest.raises(UserNotFound):
            ledger_service.get_balance(999)


class TestDeposit:
    def test_deposit_from_zero(self, test_user):
        assert ledger_service.deposit(test_user.id, 500) == 500
        assert _balance(test_user.id) == 500

    def test_deposits_accumulate(self, test_user):
        ledger_service.deposit(test_user.id, 500)
        ledger_service.deposit(test_user.id, 137)
        assert _balance(test_user.id) == 637

    @pytest.mark.parametrize("amount", [0, -1, -500, 1.5, 5.0, "500", None, True])
    def test_invalid_amount_leaves_balance(self, test_user, amount):
        with pytest.raises(InvalidAmount):
            ledger_service.deposit(test_user.id, amount)
        assert _balance(test_user.id) == 0

    def test_deposit_unknown_user(self, db_session):
        with pytest.raises(UserNotFound):
            ledger_service.deposit(999, 500)

    def test_invalid_amount_checked_before_lookup(self, db_session):
        with pytest.raises(InvalidAmount):
            ledger_service.deposit(999, -1)

    @pytest.mark.parametrize("amount", [ledger_service.MAX_CENTS + 1, 10 ** 20])
    def test_amount_beyond_bigint_refused(self, test_user, amount):
        with pytest.raises(InvalidAmount):
            ledger_service.deposit(test_user.id, amount)
        assert _balance(test_user.id) == 0

    def test_deposit_that_would_overflow_balance_refused(self, make_user):
        user = make_user("whale", balance_cents=ledger_service.MAX_CENTS - 100)

        with pytest.raises(InvalidAmount):
            ledger_service.deposit(user.id, 200)
        assert _balance(user.id) == ledger_service.MAX_CENTS - 100

        assert ledger_service.deposit(user.id, 100) == ledger_service.MAX_CENTS


class TestPurchase:
    def test_purchase_debits_price(self, rich_user, gpu):
        record = ledger_service.purchase(rich_user.id, gpu.id)

        assert record.id is not None
        assert record.user_id == rich_user.id
        assert record.item_id == gpu.id
        assert record.price_cents == 17500
        assert record.purchased_at is not None
        assert _balance(rich_user.id) == 2500

    def test_second_purchase_insufficient_funds(self, rich_user, gpu):
        ledger_service.purchase(rich_user.id, gpu.id)

        with pytest.raises(InsufficientFunds) as exc_info:
            ledger_service.purchase(rich_user.id, gpu.id)

        assert exc_info.value.balance_cents == 2500
        assert exc_info.value.price_cents == 17500
        assert _balance(rich_user.id) == 2500
        assert db.session.query(Purchase).count() == 1

    def test_insufficient_funds_changes_nothing(self, test_user, gpu):
        ledger_service.deposit(test_user.id, 17499)

        with pytest.raises(InsufficientFunds):
            ledger_service.purchase(test_user.id, gpu.id)

        assert _balance(test_user.id) == 17499
        assert db.session.query(Purchase).count() == 0

    def test_exact_balance_purchase(self, test_user, gpu):
        ledger_service.deposit(test_user.id, 17500)
        ledger_service.purchase(test_user.id, gpu.id)
        assert _balance(test_user.id) == 0

    def test_free_item(self, test_user, make_item):
        freebie = make_item(name="Sticker", price_cents=0)
        record = ledger_service.purchase(test_user.id, freebie.id)
        assert record.price_cents == 0
        assert _balance(test_user.id) == 0

    def test_unknown_item(self, rich_user):
        with pytest.raises(ItemNotFound):
            ledger_service.purchase(rich_user.id, 999)
        assert _balance(rich_user.id) == 20000

    def test_unknown_user(self, gpu, db_session):
        with pytest.raises(UserNotFound):
            ledger_service.purchase(999, gpu.id)
        assert db.session.query(Purchase).count() == 0

    def test_price_is_snapshotted(self, rich_user, gpu):
        record = ledger_service.purchase(rich_user.id, gpu.id)
        purchase_id = record.id

        item = db.session.get(Item, gpu.id)
        item.price_cents = 99999
        db.session.commit()

        stored = db.session.get(Purchase, purchase_id)
        assert stored.price_cents == 17500
        assert ledger_service.list_purchases(rich_user.id)[0].price_cents == 17500

    def test_storage_failure_rolls_back(self, rich_user, gpu, monkeypatch):
        def broken_flush(*args, **kwargs):
            raise OperationalError("INSERT INTO purchases", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db.session, "flush", broken_flush)

        with pytest.raises(StoreUnavailable):
            ledger_service.purchase(rich_user.id, gpu.id)

        monkeypatch.undo()
        assert _balance(rich_user.id) == 20000
        assert db.session.query(Purchase).count() == 0

    def test_balance_never_negative(self, test_user, make_item):
        cheap = make_item(name="Cable", price_cents=300)
        ledger_service.deposit(test_user.id, 1000)

        results = []
        for _ in range(5):
            try:
                ledger_service.purchase(test_user.id, cheap.id)
                results.append("ok")
            except InsufficientFunds:
                results.append("insufficient")
            assert _balance(test_user.id) >= 0

        assert results == ["ok", "ok", "ok", "insufficient", "insufficient"]
        assert _balance(test_user.id) == 100


class TestHistoryAndItems:
    def test_list_purchases_newest_first(self, rich_user, make_item):
        cable = make_item(name="Cable", price_cents=300)
        mouse = make_item(name="Mouse", price_cents=2500)

        ledger_service.purchase(rich_user.id, cable.id)
        ledger_service.purchase(rich_user.id, mouse.id)

        history = ledger_service.list_purchases(rich_user.id)

        assert [p.item_name for p in history] == ["Mouse", "Cable"]
        assert [p.price_cents for p in history] == [2500, 300]
        assert all(p.username == "rich_test_user" for p in history)

    def test_list_purchases_only_own(self, rich_user, make_user, gpu):
        other = make_user("other", balance_cents=20000)
        ledger_service.purchase(other.id, gpu.id)

        assert ledger_service.list_purchases(rich_user.id) == []

    def test_list_purchases_unknown_user(self, db_session):
        with pytest.raises(UserNotFound):
            ledger_service.list_purchases(999)

    def test_items(self, make_item):
        first = make_item(name="Cable", price_cents=300)
        second = make_item(name="Mouse", price_cents=2500)

        assert [i.id for i in ledger_service.list_items()] == [first.id, second.id]
        assert ledger_service.get_item(second.id).name == "Mouse"

        with pytest.raises(ItemNotFound):
            ledger_service.get_item(999)


def test_check_constraint_backs_up_balance(rich_user):
    user = db.session.get(User, rich_user.id)
    user.balance_cents = -1
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
    assert _balance(rich_user.id) == 20000
