from money import Money, ZERO
from models import Account


def funded(amount: str = "100") -> Account:
    account = Account(client=1)
    account.deposit(Money(amount))
    return account


class TestNewAccount:
    def test_starts_zeroed_and_unlocked(self):
        """Test a new account is zeroed and unlocked."""
        account = Account(client=7)
        assert account.available == ZERO
        assert account.held == ZERO
        assert account.total == ZERO
        assert account.locked is False


class TestDepositAndWithdraw:
    """Test direct balance movements."""

    def test_deposit(self):
        """Test a deposit credits available and total."""
        account = funded("100")
        assert account.available == Money("100")
        assert account.held == ZERO
        assert account.total == Money("100")

    def test_withdraw(self):
        """Test a withdrawal debits available and total."""
        account = funded("100")
        assert account.withdraw(Money("40")) is True
        assert account.available == Money("60")
        assert account.total == Money("60")

    def test_withdraw_more_than_available_fails(self):
        """Test an overdrawing withdrawal fails without changes."""
        account = funded("60")
        assert account.withdraw(Money("100")) is False
        assert account.available == Money("60")
        assert account.total == Money("60")

    def test_withdraw_exact_balance(self):
        """Test withdrawing the full available balance."""
        account = funded("60")
        assert account.withdraw(Money("60")) is True
        assert account.available == ZERO

    def test_withdraw_ignores_held_funds(self):
        """Test held funds cannot be withdrawn."""
        account = funded("100")
        account.hold(Money("70"))
        assert account.withdraw(Money("50")) is False
        assert account.available == Money("30")


class TestHoldAndRelease:
    """Test moving funds between available and held."""

    def test_hold_and_release(self):
        """Test moving funds to held and back."""
        account = funded("100")

        assert account.hold(Money("70")) == Money("70")
        assert account.available == Money("30")
        assert account.held == Money("70")

        assert account.release(Money("50")) == Money("50")
        assert account.available == Money("80")
        assert account.held == Money("20")
        assert account.total == Money("100")

    def test_hold_is_clamped_to_available(self):
        """Test hold moves at most the available funds."""
        account = funded("40")
        assert account.hold(Money("100")) == Money("40")
        assert account.available == ZERO
        assert account.held == Money("40")
        assert account.total == Money("40")

    def test_release_is_clamped_to_held(self):
        """Test release moves at most the held funds."""
        account = funded("100")
        account.hold(Money("20"))
        assert account.release(Money("50")) == Money("20")
        assert account.available == Money("100")
        assert account.held == ZERO


class TestChargeback:
    """Test chargeback and the lock it leaves behind."""

    def test_chargeback_locks_account(self):
        """Test a chargeback removes held funds and locks the account."""
        account = funded("100")
        account.hold(Money("50"))
        assert account.chargeback(Money("50")) == Money("50")

        assert account.available == Money("50")
        assert account.held == ZERO
        assert account.total == Money("50")
        assert account.locked is True

    def test_chargeback_is_clamped_to_held(self):
        """Test a chargeback removes at most the held funds."""
        account = funded("100")
        account.hold(Money("30"))
        assert account.chargeback(Money("50")) == Money("30")
        assert account.total == Money("70")

    def test_chargeback_locks_even_with_nothing_held(self):
        """Test a chargeback locks the account even with nothing held."""
        account = funded("100")
        assert account.chargeback(Money("50")) == ZERO
        assert account.locked is True
        assert account.total == Money("100")

    def test_locked_account_rejects_every_operation(self):
        """Test no operation changes a locked account."""
        account = funded("100")
        account.hold(Money("50"))
        account.chargeback(Money("50"))
        before = account.snapshot()

        account.deposit(Money("10"))
        assert account.withdraw(Money("10")) is False
        assert account.hold(Money("10")) == ZERO
        assert account.release(Money("10")) == ZERO
        assert account.chargeback(Money("10")) == ZERO

        assert account.snapshot() == before


class TestLargeAmounts:
    def test_large_balances_keep_full_precision(self):
        """Test balances beyond 28 significant digits stay exact."""
        account = funded("9" * 30 + ".9999")
        account.deposit(Money("9" * 30 + ".9999"))

        assert account.withdraw(Money("0.0001")) is True
        assert str(account.total) == "1" + "9" * 30 + ".9997"
        assert account.total == account.available + account.held


class TestSnapshot:
    def test_snapshot_copies_state(self):
        """Test a snapshot is not affected by later operations."""
        account = funded("12.5")
        snapshot = account.snapshot()
        account.deposit(Money("1"))

        assert snapshot.client == 1
        assert snapshot.available == Money("12.5")
        assert snapshot.total == Money("12.5")
        assert snapshot.locked is False
