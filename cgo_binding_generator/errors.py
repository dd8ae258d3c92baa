"""
Exceptions raised while generating cgo bindings
"""


class BindingError(Exception):
    """Base class for all binding generation errors"""


class UnsupportedTypeError(BindingError):
    """A native construct has no Go lowering; generation cannot continue"""


class DeclarationSourceError(BindingError):
    """The declaration source could not produce a declaration document"""

    def __init__(self, message: str, header: str = None):
        self.header = header
        if header:
            message = f"{header}: {message}"
        super().__init__(message)
