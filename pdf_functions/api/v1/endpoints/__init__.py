from fastapi import APIRouter
from .pdf import router as pdf_router
from .convert import router as convert_router

router = APIRouter()
router.include_router(pdf_router)
router.include_router(convert_router)
