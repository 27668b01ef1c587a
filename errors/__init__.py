"""Marketplace error taxonomy.

Every domain manager raises one of these. Each class carries the HTTP status
code the API layer answers with, so routes only translate, never decide.
"""

from fastapi import status


class MarketplaceError(Exception):
    """Base class for all domain errors."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketplaceError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(MarketplaceError):
    """Missing, invalid or expired credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(MarketplaceError):
    """Authenticated but not permitted."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(MarketplaceError):
    """Referenced entity does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(MarketplaceError):
    """Entity already exists."""
    status_code = status.HTTP_400_BAD_REQUEST


class IllegalTransition(MarketplaceError):
    """Order status change not allowed from the current status."""
    status_code = status.HTTP_400_BAD_REQUEST


# Cart and checkout
class NotAvailable(ValidationError):
    """Listing is missing or not active."""
    pass


class SelfTransaction(ValidationError):
    """Caller tried to buy their own listing."""
    pass


class InvalidQuantity(ValidationError):
    """Quantity below one."""
    pass


class EmptyCart(ValidationError):
    """Checkout attempted without cart items."""
    pass


class ItemUnavailable(ValidationError):
    """A cart item can no longer be purchased."""
    def __init__(self, title: str):
        self.title = title
        super().__init__(f'Item "{title}" is no longer available')


# Reviews
class SelfReview(ValidationError):
    """Reviewer and reviewee are the same user."""
    pass


class DuplicateReview(Conflict):
    """Reviewer already reviewed this user."""
    pass


# Negotiation
class DuplicateRequest(Conflict):
    """An open request already exists for this buyer, seller and target."""
    pass


# Accounts
class DuplicateEmail(Conflict):
    """Email address already registered."""
    pass


__all__ = [
    'MarketplaceError',
    'ValidationError',
    'Unauthenticated',
    'Forbidden',
    'NotFound',
    'Conflict',
    'IllegalTransition',
    'NotAvailable',
    'SelfTransaction',
    'InvalidQuantity',
    'EmptyCart',
    'ItemUnavailable',
    'SelfReview',
    'DuplicateReview',
    'DuplicateRequest',
    'DuplicateEmail'
]
