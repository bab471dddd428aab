"""API v1 router - aggregates all endpoint routers."""

from fastapi import APIRouter

from mvdb.api.v1 import master_data, hierarchy, photobooks, translate

api_router = APIRouter()

api_router.include_router(master_data.router, prefix="/master", tags=["master-data"])
api_router.include_router(hierarchy.router, prefix="/hierarchy", tags=["hierarchy"])
api_router.include_router(photobooks.router, prefix="/photobooks", tags=["photobooks"])
api_router.include_router(translate.router, prefix="/translate", tags=["translation"])
