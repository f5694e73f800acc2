"""Domain-specific exceptions"""

import uuid


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class UserNotFoundError(DomainException):
    """Referenced user does not exist"""

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidTransactionDataError(DomainException):
    """Transaction data is malformed or invalid"""

    pass


class InvalidConfigurationError(DomainException):
    """User savings configuration cannot be applied"""

    pass


class InsufficientSavingsError(DomainException):
    """Withdrawal exceeds the user's cumulative saved total"""

    pass


class NotificationParseError(DomainException):
    """Notification text could not be turned into a transaction"""

    def __init__(self, message: str, parsed=None):
        super().__init__(message)
        self.parsed = parsed


class TransactionProcessingError(DomainException):
    """Finalizing a transaction failed; the transaction was marked FAILED"""

    def __init__(self, message: str, transaction_id: uuid.UUID | None = None):
        super().__init__(message)
        self.transaction_id = transaction_id
