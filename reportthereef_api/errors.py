class CheckinError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(CheckinError):
    status_code = 400


class OutsideServiceRegion(InvalidInput):
    def __init__(self, message: str = 'Check-in is only available within BVI waters'):
        super().__init__(message)


class NotFound(CheckinError):
    status_code = 404


class AuthenticationRequired(CheckinError):
    status_code = 401

    def __init__(self, message: str = 'Authentication required'):
        super().__init__(message)


class StoreFailure(CheckinError):
    status_code = 500

    def __init__(self, message: str = 'Internal server error'):
        super().__init__(message)
