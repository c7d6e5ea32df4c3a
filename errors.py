"""
Storefront error taxonomy.

Every error carries a message that is safe to show to the person who
triggered the action, and the HTTP status the API answers with.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ReadFailure(StorefrontError):
    status_code = 503
    default_message = "Could not load data"


class WriteFailure(StorefrontError):
    status_code = 502
    default_message = "Could not save changes"


class ValidationFailure(StorefrontError):
    status_code = 400
    default_message = "Invalid input"


class MissingImage(ValidationFailure):
    default_message = "Please provide a product image"


class DuplicateEmail(StorefrontError):
    status_code = 400
    default_message = "Email already in use"


class InvalidCredentials(StorefrontError):
    status_code = 401
    default_message = "Incorrect email or password"


class LoginRequired(StorefrontError):
    status_code = 401
    default_message = "Please log in to continue"


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Not found"
