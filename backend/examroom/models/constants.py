ROLE_VALUES = [
    'admin',
    'instructor',
    'student',
]

QUESTION_TYPE_VALUES = ['single_choice', 'free_text']
CHOICE_OPTION_KEYS = ['A', 'B', 'C', 'D']

ATTEMPT_STATUS_VALUES = [
    'in_progress',
    'submitting',
    'auto_graded',
    'pending_manual_grading',
    'grading_completed',
]
ATTEMPT_TERMINAL_STATUSES = ['auto_graded', 'grading_completed']
SUBMISSION_TRIGGER_VALUES = ['manual', 'timer', 'proctoring', 'deadline_sweep']

EXAM_DURATION_RANGE = (1, 300)
QUESTION_MARKS_RANGE = (1, 100)


def sql_in(column: str, values: list[str]) -> str:
    """Render a CHECK constraint body limiting ``column`` to ``values``."""
    quoted = ', '.join(f"'{value}'" for value in values)
    return f'{column} in ({quoted})'
