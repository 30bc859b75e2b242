# -*- coding: utf-8 -*-
from __future__ import annotations

import pytest

from diehard.app.core.errors_core import InsufficientBalanceError, NotFoundError, ValidationError
from diehard.app.services.coins_service import credit_coins, debit_coins, get_balance

from .helpers import balance_of, ledger_entries


async def test_debit_writes_spend_entry(db, make_user):
    uid = await make_user("alice", balance=100)

    result = await debit_coins(db, uid, 30, category="raffle_purchase", description="3 ticket(s)")
    await db.commit()

    assert result.new_balance == 70
    assert result.type == "spend"
    assert await balance_of(db, uid) == 70
    [entry] = await ledger_entries(db, uid)
    assert (entry.type, entry.category, entry.amount, entry.balance) == ("spend", "raffle_purchase", 30, 70)


async def test_debit_insufficient_balance_has_no_effect(db, make_user):
    uid = await make_user("bob", balance=20)

    with pytest.raises(InsufficientBalanceError) as err:
        await debit_coins(db, uid, 21, category="raffle_purchase")
    await db.rollback()

    assert err.value.details == {"required": 21, "available": 20}
    assert await balance_of(db, uid) == 20
    assert await ledger_entries(db, uid) == []


async def test_credit_grows_balance_and_lifetime(db, make_user):
    uid = await make_user("carol", balance=5)

    result = await credit_coins(db, uid, 15, category="raffle_refund", metadata={"raffle_id": 1})
    await db.commit()

    assert result.new_balance == 20
    assert await get_balance(db, uid) == 20
    [entry] = await ledger_entries(db, uid, "raffle_refund")
    assert entry.type == "earn"
    assert entry.meta == {"raffle_id": 1}


@pytest.mark.parametrize("amount", [0, -5, True, 2.5])
async def test_amount_must_be_positive_int(db, make_user, amount):
    uid = await make_user("dave", balance=50)
    with pytest.raises(ValidationError):
        await debit_coins(db, uid, amount, category="x")


async def test_unknown_user(db):
    with pytest.raises(NotFoundError):
        await credit_coins(db, 999, 10, category="raffle_refund")
    with pytest.raises(NotFoundError):
        await debit_coins(db, 999, 10, category="raffle_purchase")
