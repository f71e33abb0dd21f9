"""
Utility functions for turning exceptions into short, log- and user-safe text.
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def describe_exception(exception: BaseException) -> str:
    """
    Describe an exception in one line.

    httpx raises several exceptions with an empty message (e.g. ``ReadTimeout()``),
    so the type name is used when there is nothing else to show. Chained causes
    are appended since transport errors usually wrap the interesting one.

    Args:
        exception: The exception to describe

    Returns:
        A single-line description, never empty
    """
    if exception is None:
        return "None"

    name = type(exception).__name__
    text = _safe_str(exception).strip()
    description = f"{name}: {text}" if text else name

    cause = exception.__cause__
    if cause is not None and cause is not exception:
        cause_text = _safe_str(cause).strip()
        if cause_text and cause_text not in description:
            description = f"{description} ({cause_text})"

    return " ".join(description.split())


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its one-line description; the traceback is only
    attached at DEBUG verbosity so per-request failures stay compact.
    """
    logger.log(
        level,
        f"{prefix} {describe_exception(exception)}",
        exc_info=exception if logger.isEnabledFor(logging.DEBUG) else None,
    )
