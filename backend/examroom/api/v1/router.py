from fastapi import APIRouter

from examroom.api.v1.endpoints import admin, attempts, exams, grading, health


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(exams.router)
api_router.include_router(exams.question_router)
api_router.include_router(attempts.router)
api_router.include_router(attempts.me_router)
api_router.include_router(grading.router)
api_router.include_router(admin.router)
