from datetime import date
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from schemas import TransactionIn, TransactionOut, UserOut


def test_out_models_read_attributes():
    row = SimpleNamespace(
        id=7, type="expense", category="food", amount=12.5, description="", date=date(2025, 3, 1), created_at=None
    )
    out = TransactionOut.model_validate(row)
    assert out.id == 7
    assert out.date == date(2025, 3, 1)

    user = UserOut.model_validate(SimpleNamespace(id=1, name="Ana", email="ana@mail.com", currency="MXN"))
    assert user.currency == "MXN"
    assert TransactionOut.model_config["from_attributes"] is True


def test_transaction_category_follows_type():
    assert TransactionIn(type="income", amount=10, category="food").category == "other"
    assert TransactionIn(type="expense", amount=10, category=" Food ").category == "food"
    with pytest.raises(ValidationError):
        TransactionIn(type="expense", amount=-1)
