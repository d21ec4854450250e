# Overview: Exception taxonomy shared by the storefront services.

"""
Storefront error taxonomy

- ValidationError: bad input shape, rejected before any side effect.
- AuthError: bad credentials or session; messages never say which factor failed.
- BusinessRuleError: well-formed request refused by a business rule.
- NotFound: referenced user or item does not exist.
- InfrastructureError: storage, entropy or lock failure. The transaction
  has been rolled back; `retryable` tells the caller whether a retry with
  backoff makes sense.
"""


class StorefrontError(Exception):
    """Base class for all errors raised by the storefront core."""
    pass


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(StorefrontError):
    pass


class InvalidAmount(ValidationError):
    """Raised when a money amount is not a positive integer of cents."""
    pass


class PasswordValidationError(ValidationError):
    """Raised when a password can't be hashed (empty or too long)."""
    pass


class UsernameValidationError(ValidationError):
    pass


# =============================================================================
# AUTHENTICATION / AUTHORIZATION
# =============================================================================

class AuthError(StorefrontError):
    pass


class InvalidCredentials(AuthError):
    def __init__(self):
        super().__init__("Invalid username or password")


class Unauthorized(AuthError):
    def __init__(self):
        super().__init__("Invalid or expired session")


# =============================================================================
# BUSINESS RULES
# =============================================================================

class BusinessRuleError(StorefrontError):
    pass


class InsufficientFunds(BusinessRuleError):
    def __init__(self, balance_cents: int, price_cents: int):
        self.balance_cents = balance_cents
        self.price_cents = price_cents
        super().__init__("Insufficient funds")


class UsernameTaken(BusinessRuleError):
    def __init__(self, username: str):
        self.username = username
        super().__init__("Account with username already exists")


# =============================================================================
# LOOKUPS
# =============================================================================

class NotFound(StorefrontError):
    pass


class UserNotFound(NotFound):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class ItemNotFound(NotFound):
    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class InfrastructureError(StorefrontError):
    retryable = False


class LockTimeout(InfrastructureError):
    """Lock wait exceeded, deadlock detected, or database busy."""
    retryable = True


class StoreUnavailable(InfrastructureError):
    retryable = True


class EntropyError(InfrastructureError):
    """The OS secure random source failed."""
    pass


class HashingError(InfrastructureError):
    pass


class SessionIdExhausted(InfrastructureError):
    """Every generated session id collided with a stored one."""
    pass
