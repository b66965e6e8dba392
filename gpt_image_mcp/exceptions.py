"""
Custom exceptions for the image tools.
"""


class ImageToolError(Exception):
    """Base exception for failures reported back to the MCP caller"""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class InvalidArgumentError(ImageToolError):
    """Raised when tool arguments are missing, conflicting or point at missing files"""

    def __init__(self, message: str, parameter: str = None):
        super().__init__(message, "invalid_argument")
        self.parameter = parameter


class SaveDirectoryError(ImageToolError):
    """Raised when no writable save directory can be found"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message, "save_directory")
        self.path = path


class ProviderRequestError(ImageToolError):
    """Raised when the image provider rejects or fails a request"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message, "provider_error")
        self.status_code = status_code


class ResponseShapeError(ImageToolError):
    """Raised when a provider response cannot be turned into image files"""

    def __init__(self, message: str):
        super().__init__(message, "response_shape")
