from fastapi import APIRouter
from qrcontact.api import contact, vehicles

router = APIRouter()
router.include_router(contact.router, tags=["Contact"])
router.include_router(vehicles.router, tags=["Vehicles"])
