"""Exception types raised by the service layer.

Plain ``ValueError`` (invalid input) and ``LookupError`` (missing rows) are
used where they fit; the classes below cover the cases that need their own
HTTP status in ``main.py``.
"""


class NotFoundError(LookupError):
    """The row does not exist, or the caller's policies do not let them see it."""


class RowLevelSecurityError(PermissionError):
    """A write produced a row that no policy allows for the caller."""

    def __init__(self, table: str) -> None:
        super().__init__(f'new row violates row-level security policy for table "{table}"')
        self.table = table


class AuthError(Exception):
    """Missing, unknown or expired credentials."""


class NotificationError(Exception):
    """The mail provider could not be reached or rejected the message."""
