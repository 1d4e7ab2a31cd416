"""Domain errors raised by the game store and payment handling.

All of them map to HTTP 400 with the message as the error text.
"""


class GameStoreError(Exception):
    """Base class for client-correctable failures."""


class UsernameTakenError(GameStoreError):
    def __init__(self, username: str):
        super().__init__("Username already taken")
        self.username = username


class InvalidUsernameError(GameStoreError):
    pass


class SelfFriendshipError(GameStoreError):
    def __init__(self):
        super().__init__("Cannot add yourself as a friend")


class UnknownPackageError(GameStoreError):
    def __init__(self, package_id: str):
        super().__init__("Invalid package")
        self.package_id = package_id


class TelegramNotConfiguredError(Exception):
    """Raised when an invoice is requested but no bot token is set."""
