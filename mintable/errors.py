"""Root of the mintable exception hierarchy."""


class MintableError(Exception):
    """Base class for every error raised by mintable."""
