"""Custom exception hierarchy for the classification bootstrap."""

from __future__ import annotations


class ClassificationError(Exception):
    """Base exception for all bootstrap errors."""


class ConfigError(ClassificationError):
    """Invalid or missing topology input or configuration."""


class InvalidCardinality(ClassificationError):
    """A host selector was given more than one candidate host."""

    def __init__(self, count: int):
        super().__init__(f"Expected zero or one host, got {count}")
        self.count = count


class ClassifierError(ClassificationError):
    """Error reported by the node classifier."""


class ClassifierAPIError(ClassifierError):
    """Error communicating with the node classifier REST API."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GroupApplyError(ClassifierError):
    """A single group upsert failed; earlier groups stay applied."""

    def __init__(self, group_name: str, cause: Exception, applied: list[str] | None = None):
        super().__init__(f"Failed to apply group '{group_name}': {cause}")
        self.group_name = group_name
        self.cause = cause
        self.applied = list(applied or [])
