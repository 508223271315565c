"""Errors raised by the stores. main.py maps each one to its HTTP status."""


class ShopError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShopError):
    status_code = 400


class InvalidArgument(ShopError):
    status_code = 400


class NotFound(ShopError):
    status_code = 404


class PersistenceError(ShopError):
    status_code = 500


class NotInitialized(ShopError):
    status_code = 500


AllocatorUninitialized = NotInitialized
