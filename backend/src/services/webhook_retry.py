"""
Retry classification for failed webhook processing.

Svix redelivers a webhook whenever the endpoint answers with a non-2xx
status. Failures that can succeed on a later delivery without code changes
(database unreachable, entity not synced yet) are retryable and must surface
as 5xx. Everything else is terminal: acknowledged with 200 so Svix stops
retrying something that will never succeed.
"""

# Matched case-insensitively against the exception message
RETRYABLE_ERROR_PATTERNS = (
    "econnrefused",
    "econnreset",
    "etimedout",
    "timeout",
    "timed out",
    "connection",
    "foreign key",
    "violates foreign key constraint",
    "referenced entity not found",
)


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a processing failure should be retried by the provider.

    Args:
        error: Exception raised while processing the event

    Returns:
        True for transient infrastructure errors and missing FK prerequisites
    """
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    message = str(error).lower()
    return any(pattern in message for pattern in RETRYABLE_ERROR_PATTERNS)
