"""
Engine error taxonomy.

Services raise these; the app registers one exception handler that turns
them into JSON responses of the form {"detail": ..., "reason": ...}.
"""


class EngineError(Exception):
    status_code = 400
    reason = "engine_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(EngineError):
    status_code = 404
    reason = "not_found"


class Forbidden(EngineError):
    status_code = 403
    reason = "forbidden"


class AlreadyCompleted(EngineError):
    status_code = 409
    reason = "already_completed"


class InvalidSubmission(EngineError):
    status_code = 422
    reason = "invalid_submission"


class SubmissionExpired(InvalidSubmission):
    reason = "submission_expired"


class InvalidTemplate(InvalidSubmission):
    reason = "invalid_template"


class UpstreamGradingFailure(EngineError):
    status_code = 502
    reason = "upstream_grading_failure"


class UpstreamGenerationFailure(EngineError):
    status_code = 502
    reason = "upstream_generation_failure"


class ResultBusy(EngineError):
    status_code = 409
    reason = "result_busy"
