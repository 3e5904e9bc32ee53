"""Directory-specific exceptions for error handling."""


class DirectoryError(Exception):
    """Base exception for all directory operations."""
    pass


class DirectoryConnectionError(DirectoryError):
    """Connecting or binding to the directory server failed."""
    pass


class DirectoryLookupError(DirectoryError):
    """A directory read failed.

    Attributes:
        target: Identity or reference that was being resolved
        message: Error message from the directory or the client
    """

    def __init__(self, target: str, message: str):
        self.target = target
        self.message = message
        super().__init__(f"{target}: {message}")


class AccountNotFoundError(DirectoryLookupError):
    """Identity lookup returned no directory object."""
    pass


class DirectoryMutationError(DirectoryError):
    """A directory write failed.

    Attributes:
        target: Distinguished name of the object being modified
        message: Error message from the directory or the client
    """

    def __init__(self, target: str, message: str):
        self.target = target
        self.message = message
        super().__init__(f"{target}: {message}")
