from palace.alma.core.exceptions import IntegrationException


class CannotLoadConfiguration(IntegrationException):
    """The settings are missing something, or something in them is invalid.

    This is raised before any request is made: the problem is visible in
    the configuration itself.
    """
