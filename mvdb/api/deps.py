"""FastAPI dependencies that wire database sessions into services."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mvdb.config import Settings, get_settings
from mvdb.db.database import get_db
from mvdb.services.hierarchy_service import HierarchyService
from mvdb.services.kv_store import KVStore
from mvdb.services.master_data_service import MasterDataService
from mvdb.services.photobook_service import PhotobookService
from mvdb.services.translation_service import TranslationService


async def get_kv_store(db: AsyncSession = Depends(get_db)) -> KVStore:
    return KVStore(db)


async def get_master_data_service(store: KVStore = Depends(get_kv_store)) -> MasterDataService:
    return MasterDataService(store)


async def get_hierarchy_service(store: KVStore = Depends(get_kv_store)) -> HierarchyService:
    return HierarchyService(store)


async def get_photobook_service(store: KVStore = Depends(get_kv_store)) -> PhotobookService:
    return PhotobookService(store)


async def get_translation_service(settings: Settings = Depends(get_settings)):
    service = TranslationService(settings)
    try:
        yield service
    finally:
        await service.close()
