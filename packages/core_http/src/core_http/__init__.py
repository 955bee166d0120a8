from .errors import ServiceError, error_body, attach_standard_error_handlers

__all__ = ["ServiceError", "error_body", "attach_standard_error_handlers"]
