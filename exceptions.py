class PaymentEngineError(Exception):
    """Base class for errors that abort a processing run."""


class RecordParseError(PaymentEngineError):
    """A row of the input stream could not be turned into a record."""

    def __init__(self, line: int, message: str):
        self.line = line
        self.message = message
        super().__init__(f"line {line}: {message}")


class DuplicateTransactionError(PaymentEngineError):
    """Raised for a reused transaction id when the duplicate policy is ``error``."""

    def __init__(self, tx: int, client: int):
        self.tx = tx
        self.client = client
        super().__init__(f"transaction id {tx} (client {client}) was already recorded")
