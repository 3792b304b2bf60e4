"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Account / Ledger
  3xxx: Approval workflow
  4xxx: Investment
  5xxx: Referral
  8xxx: Validation
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Unknown account / transaction / plan / contract."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


# --- 1xxx: Auth ---

class InvalidTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class ForbiddenError(AppError):
    def __init__(self, detail: str = "Admin role required") -> None:
        super().__init__(1002, detail, 403)


# --- 2xxx: Account / Ledger ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )
        self.required = required
        self.available = available


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str) -> None:
        super().__init__(2002, f"Account not found: {account_id}")


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(2003, f"Transaction not found: {transaction_id}")


class AccountExistsError(AppError):
    def __init__(self, account_id: str) -> None:
        super().__init__(2004, f"Account already registered: {account_id}", 409)


# --- 3xxx: Approval workflow ---

class AlreadyProcessedError(AppError):
    """State transition attempted on a record that already left its open state.

    Benign: callers treat it as success-equivalent and never retry on it.
    """

    def __init__(self, target: str, status: str | None = None) -> None:
        detail = f"{target} already processed"
        if status is not None:
            detail = f"{detail} (status={status})"
        super().__init__(3001, detail, 409)
        self.target = target
        self.status = status


# --- 4xxx: Investment ---

class PlanNotFoundError(NotFoundError):
    def __init__(self, plan_id: str) -> None:
        super().__init__(4001, f"Investment plan not found: {plan_id}")


class ContractNotFoundError(NotFoundError):
    def __init__(self, contract_id: str) -> None:
        super().__init__(4002, f"Investment contract not found: {contract_id}")


class PlanExistsError(AppError):
    def __init__(self, name: str) -> None:
        super().__init__(4003, f"Investment plan name already exists: {name}", 409)


# --- 8xxx: Validation ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(8001, detail, 422)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ExternalServiceError(AppError):
    """Notification / storage collaborator failure. Never undoes a ledger commit."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(9003, f"{service} failed: {detail}", 502)
        self.service = service
