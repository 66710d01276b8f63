"""Error taxonomy for the chat backend.

Every error carries a short client-facing message; handlers raise these and the
hub turns them into ``{'success': False, 'message': ...}`` acks.
"""


class ChatError(Exception):
    """Base class for errors reported back to a client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """Missing or invalid input. Nothing was changed."""


class ConflictError(ChatError):
    """The request clashes with current state (name taken, already bound...)."""


class AlreadyOnlineError(ConflictError):
    def __init__(self, username: str):
        super().__init__(f'{username} is already online')
        self.username = username


class NotFoundError(ChatError):
    """No user matches the given code or name."""


class StorageError(ChatError):
    """The identity store failed. Clients only ever see a generic message."""

    def __init__(self, message: str = 'server error'):
        super().__init__(message)


class DuplicateUserError(StorageError):
    """A create hit the unique index on username or code."""

    def __init__(self, field: str = 'username'):
        super().__init__(f'{field} already taken')
        self.field = field
