"""
Exceptions raised by the assembly engine.

Content problems in generated files are reported as diagnostics, never
raised. These exceptions cover caller bugs only.
"""


class AssemblyError(Exception):
    """Base class for assembly engine failures."""

    pass


class AssemblyInputError(AssemblyError):
    """Raised when a work order is structurally invalid."""

    def __init__(self, message: str, work_order_id: str | None = None, path: str | None = None):
        self.work_order_id = work_order_id
        self.path = path
        location = []
        if work_order_id:
            location.append(f"work order '{work_order_id}'")
        if path:
            location.append(f"file '{path}'")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)


class ConcurrentAssemblyError(AssemblyError):
    """Raised when a project already has an assembly in flight."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Assembly already running for project '{project_id}'")
