from fastapi import APIRouter
from agri_rental.api.v1 import (
    auth,
    equipment,
    availability,
    rental_requests,
)

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(availability.router, prefix="/equipment", tags=["availability"])
api_router.include_router(equipment.router, prefix="/equipment", tags=["equipment"])
api_router.include_router(rental_requests.router, prefix="/rental-requests", tags=["rental-requests"])
