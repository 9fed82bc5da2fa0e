"""Exception taxonomy for the budget engine."""


class BudgetEngineError(Exception):
    def __init__(self, message="", **context):
        super().__init__(message)
        self.context = context


class InvalidPeriod(BudgetEngineError, ValueError):
    """Malformed or contradictory period parameters. Not retried."""


class NotFound(BudgetEngineError, LookupError):
    """An update targeted a row that does not exist."""


class DuplicateEntry(BudgetEngineError, ValueError):
    """The ledger already holds an entry for this rule and due date."""


class InvalidRule(BudgetEngineError, ValueError):
    """A stored recurring rule cannot produce a valid ledger entry."""


class PersistenceFailure(BudgetEngineError, RuntimeError):
    """The store could not be read or written."""


class Unauthorized(BudgetEngineError, PermissionError):
    pass
