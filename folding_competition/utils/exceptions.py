"""
Custom exceptions for the team competition with user-friendly error messages.
"""

class CompetitionException(Exception):
    """Base exception for team competition errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class NotFoundError(CompetitionException):
    """Raised when a user, team, hardware or monthly result does not exist."""
    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            f"{entity} '{identifier}' not found",
            f"No {entity.lower()} found for '{identifier}'"
        )

class InvalidStateError(CompetitionException):
    """Raised when an operation is not permitted in the current competition state."""
    def __init__(self, reason: str):
        super().__init__(
            f"Invalid state: {reason}",
            reason
        )

class ProviderError(CompetitionException):
    """Base exception for stats provider failures, scoped to a single user."""
    def __init__(self, folding_user_name: str, message: str, user_message: str = None):
        self.folding_user_name = folding_user_name
        super().__init__(message, user_message)

class TransientProviderError(ProviderError):
    """Raised when the stats provider cannot be reached or returns an error status."""
    def __init__(self, folding_user_name: str, details: str = None):
        super().__init__(
            folding_user_name,
            f"Unable to retrieve stats for '{folding_user_name}': {details}",
            "Stats provider is unavailable, stats will be retried on the next update."
        )

class ProviderProtocolError(ProviderError):
    """Raised when the stats provider returns a payload that cannot be parsed."""
    def __init__(self, folding_user_name: str, details: str = None):
        super().__init__(
            folding_user_name,
            f"Unexpected stats response for '{folding_user_name}': {details}",
            "Stats provider returned an unexpected response."
        )
