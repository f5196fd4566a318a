# exceptions.py


class UserNotAuthenticated(Exception):
    """Raised when the request carries no usable identity."""

    pass


class UserEmailNotFound(UserNotAuthenticated):
    """Raised when the email is not found in the token claims."""

    pass
