"""Validation of ACL tags assigned to machines and pre-auth keys."""

from __future__ import annotations

TAG_PREFIX = "tag:"


class InvalidTagError(ValueError):
    """Raised when a tag does not follow the tag naming rules."""


def validate_tag(tag: str) -> None:
    """Check that ``tag`` starts with ``tag:``, is lower case and has no spaces."""
    if not tag.startswith(TAG_PREFIX):
        raise InvalidTagError("tag must start with the string 'tag:'")
    if tag.lower() != tag:
        raise InvalidTagError("tag should be lowercase")
    if len(tag.split()) > 1:
        raise InvalidTagError("tag should not contains space")