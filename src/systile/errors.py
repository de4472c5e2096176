"""
Error taxonomy for the systile core.

The core has no recoverable runtime errors. Everything here is raised at an
admission point (job start, configuration, grid command) and leaves the
model's state untouched.
"""


class SystileError(Exception):
    """Base class for all errors raised by the systile core."""


class InvalidDimensions(SystileError):
    """A matrix descriptor has a zero (or otherwise unusable) dimension."""


class ProtocolViolation(SystileError):
    """A collaborator issued a command the current phase does not allow."""


class ArithmeticOverflow(SystileError):
    """The accumulator is too narrow for the requested reduction."""
