"""API v1 routes."""

from fastapi import APIRouter

from stajkontrol.api.v1.endpoints import admin, auth, basvuru, danisman, defter, excel, kariyer, sirket

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Student routes sit at the root: /basvuru..., /defter...
api_router.include_router(basvuru.router, tags=["Student - Applications"])
api_router.include_router(defter.router, tags=["Student - Logbooks"])

api_router.include_router(sirket.router, prefix="/sirket", tags=["Company"])
api_router.include_router(danisman.router, prefix="/danisman", tags=["Advisor"])
api_router.include_router(kariyer.router, prefix="/kariyer", tags=["Career Center"])
api_router.include_router(excel.router, prefix="/admin/excel", tags=["Admin - Excel Import"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
