"""
Domain errors raised by the fleet services.

Services never raise HTTPException directly; the app factory maps these to
404/400/403 responses so the same operations can run from scripts.
"""


class FleetError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(FleetError):
    status_code = 404


class ValidationError(FleetError):
    status_code = 400


class InvalidTransitionError(ValidationError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Invalid breakdown status transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class ForbiddenError(FleetError):
    status_code = 403
