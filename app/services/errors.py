# app/services/errors.py
"""
Failure taxonomy for AI-service calls.

Every error carries a ``message_key`` the client resolves through its UI
translation table, plus a short English ``message`` used when no table is
available. Raw model output never goes into either; it is logged instead.
"""
from __future__ import annotations


class AIServiceError(Exception):
    message_key = "errorUnexpected"
    message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, *, message_key: str | None = None):
        if message is not None:
            self.message = message
        if message_key is not None:
            self.message_key = message_key
        super().__init__(self.message)


class ParseError(AIServiceError):
    """Model output could not be read as the expected structured data."""

    message_key = "errorUnexpected"
    message = "The AI response could not be understood."


class NoIngredientsError(ParseError):
    message_key = "errorIdentifyIngredients"
    message = "Could not identify any ingredients. Please try another photo."


class GenerationError(AIServiceError):
    message_key = "errorUnexpected"
    message = "The AI service could not complete the request."


class TranslationError(AIServiceError):
    message_key = "errorTranslate"
    message = "Could not translate the app."


class ServiceNotConfiguredError(AIServiceError):
    message_key = "errorUnexpected"
    message = "The AI service is not available right now."
