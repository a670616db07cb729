from fastapi import APIRouter
from relay.api.relay import router as relay_router

api_router = APIRouter()

# Include all the routers
api_router.include_router(relay_router)
