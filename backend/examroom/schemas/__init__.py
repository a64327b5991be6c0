from examroom.schemas.attempt import (
    AnswerIn,
    AttemptDetailOut,
    AttemptListResponse,
    AttemptOut,
    AttemptStartOut,
    AttemptSubmitIn,
    DraftAnswersIn,
    ExamPaperOut,
    FocusLossOut,
    FreeTextQuestionView,
    SingleChoiceQuestionView,
)
from examroom.schemas.exam import (
    ExamActivationUpdate,
    ExamCreate,
    ExamDetailOut,
    ExamListResponse,
    ExamOut,
    QuestionAuthoringOut,
    QuestionCreateRequest,
    QuestionUpdate,
)
from examroom.schemas.grading import (
    AttemptGradingOut,
    ExamResultListResponse,
    GradeIn,
    GradingAnswerOut,
    RegradeAuditOut,
    SweepOut,
)
