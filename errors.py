"""
Error codes and the user-facing messages the API answers with.
"""
from fastapi import HTTPException, status

MESSAGES = {
    "auth/email-already-in-use": "Email already registered",
    "auth/invalid-email": "Invalid email address",
    "auth/weak-password": "Password must be at least 6 characters",
    "auth/invalid-credential": "Incorrect email or password",
    "auth/unauthenticated": "Could not validate credentials",
    "auth/user-not-found": "No account exists for this email",
    "store/not-found": "Record not found",
    "store/unavailable": "The data store is unavailable, try again later",
    "validation/debt-over-limit": "Current debt cannot exceed the card limit",
}

DEFAULT_MESSAGE = "Unexpected error"


def message_for(code: str) -> str:
    return MESSAGES.get(code, DEFAULT_MESSAGE)


def api_error(code: str, status_code: int = status.HTTP_400_BAD_REQUEST, headers=None) -> HTTPException:
    """Build an HTTPException whose detail is the message mapped to ``code``."""
    return HTTPException(status_code=status_code, detail=message_for(code), headers=headers)


def not_found() -> HTTPException:
    return api_error("store/not-found", status.HTTP_404_NOT_FOUND)
