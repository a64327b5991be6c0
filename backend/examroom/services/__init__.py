from examroom.services import (
    attempt_service,
    audit_service,
    bootstrap_service,
    delivery_service,
    exam_service,
    grading,
    manual_grading_service,
    results_service,
    submission_service,
    sweep_service,
)

__all__ = [
    'attempt_service',
    'audit_service',
    'bootstrap_service',
    'delivery_service',
    'exam_service',
    'grading',
    'manual_grading_service',
    'results_service',
    'submission_service',
    'sweep_service',
]
