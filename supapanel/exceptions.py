"""
Panel exceptions.

Raised by the services before any side effect takes place; the routers turn
them into HTTP errors (400 / 409 / 404 / 500).
"""


class PanelError(Exception):
    """Base class for errors reported back to the operator."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(PanelError):
    """Missing or malformed input."""


class DomainFormatError(InvalidInputError):
    """Domain does not match the hostname grammar."""


class ConflictError(PanelError):
    """Value already taken by another record."""


class DomainConflictError(ConflictError):
    """Domain already bound to another project or to the panel."""


class ProjectNotFoundError(PanelError):
    """Project id no longer exists."""

    def __init__(self, project_id):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class RoutingConfigError(PanelError):
    """Routing configuration could not be written to disk."""
