class ExpenseTrackerError(Exception):
    """Base class for errors raised by the expense tracker."""


class ParseError(ExpenseTrackerError):
    def __init__(
        self,
        message: str,
        *,
        line: int | None = None,
        column: str | None = None,
        value: str | None = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.value = value
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = []
        if self.line is not None:
            parts.append(f"line {self.line}")
        if self.column:
            parts.append(f"column '{self.column}'")
        location = f" ({', '.join(parts)})" if parts else ""
        offending = f": {self.value!r}" if self.value is not None else ""
        return f"{self.message}{location}{offending}"


class ConfigError(ExpenseTrackerError):
    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class LedgerError(ExpenseTrackerError):
    """A transaction violates the ledger's category invariants."""
