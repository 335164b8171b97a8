from fastapi import APIRouter

from spinup.api.v1.artifacts import router as artifacts_router
from spinup.api.v1.trello import router as trello_router

v1_router = APIRouter()

v1_router.include_router(trello_router)
v1_router.include_router(artifacts_router)
