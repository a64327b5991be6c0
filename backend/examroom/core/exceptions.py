from fastapi import HTTPException, status


class ExamroomError(HTTPException):
    """Base class for errors raised by the attempt lifecycle and grading services.

    Subclasses pin the HTTP status so the service layer can raise them directly and
    FastAPI renders them as ``{"detail": ...}`` like any other HTTPException.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = 'Request failed'

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(ExamroomError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'


class AlreadyAttempted(ExamroomError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'You have already attempted this exam'


class InvalidState(ExamroomError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Operation not allowed in the current state'


class ValidationError(ExamroomError):
    status_code = 422
    default_detail = 'Invalid input'


class IncompleteGrading(ExamroomError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'All free-text answers must be graded before finalizing'


class Unauthorized(ExamroomError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Insufficient permissions'
