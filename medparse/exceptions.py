"""
Domain exceptions raised by the parsing pipeline and the tenant job queue
"""


class ParseFailure(Exception):
    """Model output could not be turned into a JSON object by any strategy"""

    def __init__(self, message: str, attempts: tuple = ()):
        super().__init__(message)
        self.attempts = attempts


class TenantAuthError(Exception):
    """Missing, unknown or inactive tenant API key"""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QueueLimitError(Exception):
    """Tenant already has as many active jobs as its tier allows"""

    def __init__(self, tier: str, limit: int, current: int):
        super().__init__(
            f"Your {tier} tier allows {limit} concurrent jobs. Currently processing: {current}. "
            "Please wait for existing jobs to complete."
        )
        self.tier = tier
        self.limit = limit
        self.current = current
