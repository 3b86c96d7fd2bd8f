# Exceptions for SAMPi
# Startup and I/O failures that should stop the agent

class SAMPiError(Exception):
    """Base exception for all SAMPi errors"""

    pass


class ConfigError(SAMPiError):
    """Raised when configuration cannot be loaded.

    This covers:
    - A missing or unreadable PLU list or shops file
    - A config.json that is not valid JSON or has the wrong shape
    """

    pass


class SourceError(SAMPiError):
    """Raised when the ECR serial source cannot be opened or read"""

    pass


class OutputError(SAMPiError):
    """Raised when the CSV output file cannot be opened or written"""

    pass
