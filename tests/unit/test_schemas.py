"""Unit tests for request schema validation."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from exchange.schemas.transaction import DepositRequest, WithdrawalRequest

ADDRESS = "TJRabPrwbZy45sbavfcjinPJC18kjpRTv8"
TX_HASH = "ab" * 32


def deposit(amount: str) -> DepositRequest:
    return DepositRequest(amount=amount, transaction_hash=TX_HASH, file_key="deposits/1.png")


def withdrawal(amount: str) -> WithdrawalRequest:
    return WithdrawalRequest(amount=amount, wallet_address=ADDRESS)


class TestAmountLimits:
    """Amounts must fit a DECIMAL(18,4) column."""

    @pytest.mark.parametrize("build", [deposit, withdrawal])
    def test_largest_storable_amount_is_accepted(self, build) -> None:
        request = build("99999999999999.9999")

        assert request.amount == Decimal("99999999999999.9999")

    @pytest.mark.parametrize("build", [deposit, withdrawal])
    @pytest.mark.parametrize("amount", ["100000000000000", "123456789012345.5"])
    def test_too_many_integer_digits_rejected(self, build, amount: str) -> None:
        with pytest.raises(ValidationError):
            build(amount)

    @pytest.mark.parametrize("build", [deposit, withdrawal])
    @pytest.mark.parametrize("amount", ["0", "-1", "1.00001"])
    def test_non_positive_or_too_precise_rejected(self, build, amount: str) -> None:
        with pytest.raises(ValidationError):
            build(amount)


class TestTronFormats:

    def test_hash_accepts_optional_0x_prefix(self) -> None:
        request = DepositRequest(
            amount="1", transaction_hash="0x" + TX_HASH, file_key="deposits/1.png"
        )

        assert request.transaction_hash == "0x" + TX_HASH

    @pytest.mark.parametrize(
        "address",
        [
            "0x52908400098527886E0F7030069857D2E4169EE7",
            "TJRabPrwbZy45sbavfcjinPJC18kjpRTv",
            "TJRabPrwbZy45sbavfcjinPJC18kjpRTv0",
        ],
    )
    def test_malformed_address_rejected(self, address: str) -> None:
        with pytest.raises(ValidationError):
            WithdrawalRequest(amount="1", wallet_address=address)
