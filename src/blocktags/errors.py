"""blocktags exception hierarchy.

Keep this module small and dependency-free: it is imported broadly across the
project and by tests.
"""


class BlockTagsError(Exception):
    """Base exception for all blocktags errors."""


class BlockTagsConfigError(BlockTagsError):
    """Raised for invalid user configuration."""


class BlockTagsRegistryError(BlockTagsError):
    """Raised for an invalid tag name or a lookup of an unregistered tag."""


class BlockTagsBuildError(BlockTagsError):
    """Raised when a site build cannot proceed."""
