"""pagepress: convert uploaded PDFs and images into encoded page images."""

from .errors import ErrorCategory, ProcessingError, describe_error


__all__ = ["ErrorCategory", "ProcessingError", "describe_error"]
