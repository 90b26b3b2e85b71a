from fastapi import APIRouter

from assessment_engine.api.declarations import router as declarations_router
from assessment_engine.api.results import router as results_router
from assessment_engine.api.sessions import router as sessions_router

router = APIRouter()
router.include_router(sessions_router)
router.include_router(results_router)
router.include_router(declarations_router)
