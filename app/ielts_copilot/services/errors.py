"""Exception classes shared by the writing co-pilot services."""
from __future__ import annotations


class CopilotError(Exception):
    """Base class for co-pilot failures with an optional details mapping."""

    default_message = "Writing co-pilot error."

    def __init__(self, message=None, **kwargs):
        if message is None:
            details = ", ".join(f"{k}={v}" for k, v in kwargs.items())
            message = f"{self.default_message} {details}" if details else self.default_message
        super().__init__(message)
        self.message = message
        self.details = kwargs


class ConfigurationError(CopilotError):
    """Raised at startup when required configuration is missing."""

    default_message = "Application is not configured."


class ValidationError(CopilotError):
    """Raised when submitted form data breaks a precondition."""

    default_message = "Invalid submission."


class EncodingFailure(CopilotError):
    """Raised when an image cannot be read or encoded."""

    default_message = "Could not read the uploaded image."


class CompletionFailure(CopilotError):
    """Raised when the remote completion call does not produce text."""

    default_message = (
        "Failed to get a response from the AI. "
        "Please check your API key and network connection."
    )


class SubmissionInProgress(CopilotError):
    """Raised when a submission starts while another is still in flight."""

    default_message = "An analysis is already in progress. Please wait for it to finish."


class InvalidTransition(CopilotError):
    """Raised on a submission state change the state machine does not allow."""

    default_message = "Invalid submission state transition."
