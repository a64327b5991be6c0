from examroom.models.audit import AuditLog
from examroom.models.exam import Answer, Attempt, ChoiceQuestion, Exam, FreeTextQuestion, Question
from examroom.models.rbac import Role, User, UserRole

__all__ = [
    'Answer',
    'Attempt',
    'AuditLog',
    'ChoiceQuestion',
    'Exam',
    'FreeTextQuestion',
    'Question',
    'Role',
    'User',
    'UserRole',
]
