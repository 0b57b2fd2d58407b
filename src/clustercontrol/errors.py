"""
Errors raised by the control connection to callers of init() and shutdown().
"""


class DriverError(Exception):
    """ Base class for errors raised by the control connection. """


class NoHostAvailableError(DriverError):
    """
    Raised when no candidate endpoint could be connected to and queried.

    :param message  A summary of the failed operation.
    :param errors   A mapping from endpoint string to the exception raised when
        that endpoint was tried.
    """

    def __init__(self, message, errors=None):
        self.errors = dict(errors or {})
        super().__init__(self._describe(message, self.errors))

    @property
    def inner_errors(self):
        return self.errors

    @staticmethod
    def _describe(message, errors):
        """
        >>> NoHostAvailableError._describe('No host', {})
        'No host'
        >>> NoHostAvailableError._describe('No host', {'1.1.1.1:9042': IOError('refused')})
        'No host: 1.1.1.1:9042 (refused)'
        """
        if not errors:
            return message
        details = ", ".join("%s (%s)" % (endpoint, error) for endpoint, error in errors.items())
        return message + ": " + details


class ConfigurationError(DriverError, ValueError):
    """ The client options are inconsistent with the cluster, such as an unknown local datacenter. """


class DriverShutdownError(DriverError):
    """ The operation was abandoned because the control connection was shut down. """
