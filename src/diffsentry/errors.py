"""Errors raised by the review pipeline."""


class ReviewError(Exception):
    """Base class for errors that stop a review before or while it runs."""


class DiffTooLargeError(ReviewError):
    """The change-set exceeds the changed-line budget; nothing was reviewed."""

    def __init__(self, total_lines: int, limit: int):
        self.total_lines = total_lines
        self.limit = limit
        super().__init__(
            f"Diff too large: {total_lines} changed lines exceeds the limit of "
            f"{limit}. Split the change into smaller pull requests or raise "
            f"DIFFSENTRY_MAX_DIFF_LINES."
        )


class NoModelProviderError(ReviewError):
    """No enabled model provider can serve the requested task."""


class ModelGenerationError(ReviewError):
    """Every provider in the fallback chain failed."""

    def __init__(self, message: str, failed_providers: list[str] | None = None):
        self.failed_providers = failed_providers or []
        super().__init__(message)
