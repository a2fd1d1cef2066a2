"""Exceptions surfaced to API clients as generic error responses."""


class AskAussieError(Exception):
    """Base exception for user-visible request failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(AskAussieError):
    """A required credential or setting is missing."""

    pass


class InvalidConversationError(AskAussieError):
    """The submitted conversation cannot be answered."""

    status_code = 400


class CompletionError(AskAussieError):
    """The remote completion call could not be opened."""

    pass
