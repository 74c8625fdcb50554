"""
Exceptions raised by the school registry services.

Registration entry points convert these into structured failure results;
privileged operations let them propagate.
"""


class SchoolRegistryError(Exception):
    """Base class for school registry errors."""

    pass


class RegistrationError(SchoolRegistryError):
    """Raised when a registration request cannot be satisfied."""

    pass


class PrivilegeRequired(SchoolRegistryError):
    """Raised when the session principal is not allowed to perform an operation."""

    pass


class SchoolNotFound(SchoolRegistryError):
    """Raised when a school does not exist or is not visible to the principal."""

    pass
