"""
Errors raised while setting the cluster context.

Every error here is terminal for the run. The CLI reports the message through
the runner's failure channel and exits non-zero.
"""


class SetContextError(Exception):
    """Base class for all failures reported back to the workflow."""
    pass


class InputError(SetContextError):
    """Raised when an action input is missing, malformed or contradicts another input."""
    pass


class ToolNotFoundError(SetContextError):
    """Raised when a required executable is not on the search path."""
    pass


class CommandError(SetContextError):
    """Raised when an external tool exits with a non-zero code."""

    def __init__(self, message, exit_code):
        """
        Args:
            message (str): The error message.
            exit_code (int): Exit code of the failed process.
        """
        super().__init__(message)
        self.exit_code = exit_code


class RemoteCallError(SetContextError):
    """Raised when the identity or management endpoint call fails or returns an unexpected body."""
    pass
