"""
Exception types shared across the intake pipeline and lifecycle engine.

Validation failures are not exceptions (they come back as field-error maps) and
abuse rejections are deliberately silent; everything here is either a
configuration problem, a named lifecycle rejection, or a system failure.
"""


class ConfigError(RuntimeError):
    """A required configuration value is missing or malformed."""


class GuardViolation(Exception):
    """An operator action was refused by a lifecycle guard."""

    def __init__(self, code, message, action=None):
        self.code = code
        self.action = action
        super().__init__(message)

    def to_dict(self):
        return {'error': str(self), 'code': self.code, 'action': self.action}


class LeadNotFound(LookupError):
    """No lead matches the given id or short id."""


class ClinicNotFound(LookupError):
    """No clinic matches the given id."""


class DispatchError(RuntimeError):
    """The clinic dispatch e-mail could not be delivered."""
