class ProgressionError(Exception):
    """Base class for domain errors raised by the progression engine."""

    status_code = 400
    error = "progression_error"

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details

    def to_dict(self):
        payload = {"error": self.message, "code": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(ProgressionError):
    status_code = 404
    error = "not_found"


class Locked(ProgressionError):
    status_code = 403
    error = "locked"


class ModuleLocked(Locked):
    error = "module_locked"


class TrackNotStarted(ProgressionError):
    error = "track_not_started"


class PrerequisitesNotMet(ProgressionError):
    error = "prerequisites_not_met"


class ConcurrentUpdate(ProgressionError):
    status_code = 409
    error = "concurrent_update"
