# guincho/core/errors.py
"""Exceptions raised by the services and translated at the HTTP boundary."""


class GuinchoError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GuinchoError):
    pass


class ProviderNotFound(GuinchoError):
    def __init__(self, message: str = "Prestador não encontrado"):
        super().__init__(message)


class BillingNotConfigured(GuinchoError):
    def __init__(self, message: str = "Stripe is not configured"):
        super().__init__(message)


class BillingError(GuinchoError):
    pass


class AdminUnauthorized(GuinchoError):
    status_code = 401

    def __init__(self, message: str = "Acesso não autorizado"):
        super().__init__(message)
