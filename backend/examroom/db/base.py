from examroom.db.base_class import Base
from examroom.models.audit import AuditLog
from examroom.models.exam import Answer, Attempt, ChoiceQuestion, Exam, FreeTextQuestion, Question
from examroom.models.rbac import Role, User, UserRole


__all__ = [
    'Answer',
    'Attempt',
    'AuditLog',
    'Base',
    'ChoiceQuestion',
    'Exam',
    'FreeTextQuestion',
    'Question',
    'Role',
    'User',
    'UserRole',
]
