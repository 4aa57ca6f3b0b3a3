"""Exit codes for compsync CLI commands.

Every command maps its outcome onto one of these codes so batch jobs can tell
a clean run from a partial one.
"""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
PARTIAL_SUCCESS = 3
BUNDLE_NOT_FOUND = 4
INVALID_CONFIG = 5
SYNC_CANCELLED = 6
VALIDATION_FAILED = 7
