"""
MOTOR REPOSITORIES

One repository per collection:
- loas, bills, amendments, other_documents (owned by this core)
- tenders, purchase_orders, fdrs, loa_fdr_links (collaborators, read or linked)

Documents use a UUID-v4 string _id which is exposed to callers as "id".
Every driver error is wrapped into PersistenceError and propagated.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import functools
import logging
import re
import uuid

from loa_core.results import PersistenceError

logger = logging.getLogger(__name__)


def persistence_operation(operation: str):
    """Translate driver errors into PersistenceError for the wrapped coroutine."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except PyMongoError as e:
                logger.error(f"[PERSISTENCE] {self.collection_name}.{operation} failed: {e}")
                raise PersistenceError(self.collection_name, operation, e)
        return wrapper
    return decorator


def to_entity(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose Mongo _id as id"""
    if doc is None:
        return None
    entity = dict(doc)
    entity["id"] = entity.pop("_id")
    return entity


class MotorRepository:
    """CRUD over a single collection."""

    collection_name: str = ""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.collection_name]

    @persistence_operation("create")
    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = {k: v for k, v in data.items() if k not in ("id", "_id")}
        doc["_id"] = str(uuid.uuid4())
        doc.setdefault("created_at", now)
        doc["updated_at"] = now
        await self.collection.insert_one(doc)
        logger.debug(f"[PERSISTENCE] Created {self.collection_name}:{doc['_id']}")
        return to_entity(doc)

    @persistence_operation("update")
    async def update(self, entity_id: str, partial: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        changes = {k: v for k, v in partial.items() if k not in ("id", "_id")}
        changes["updated_at"] = datetime.utcnow()
        await self.collection.update_one({"_id": entity_id}, {"$set": changes})
        return to_entity(await self.collection.find_one({"_id": entity_id}))

    @persistence_operation("push")
    async def push(self, entity_id: str, field: str, value: Any) -> None:
        await self.collection.update_one({"_id": entity_id}, {"$push": {field: value}})

    @persistence_operation("delete")
    async def delete(self, entity_id: str) -> bool:
        result = await self.collection.delete_one({"_id": entity_id})
        return result.deleted_count > 0

    @persistence_operation("delete_many")
    async def delete_many(self, query: Dict[str, Any]) -> int:
        result = await self.collection.delete_many(query)
        return result.deleted_count

    @persistence_operation("find_by_id")
    async def find_by_id(self, entity_id: str) -> Optional[Dict[str, Any]]:
        return to_entity(await self.collection.find_one({"_id": entity_id}))

    @persistence_operation("find_one")
    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return to_entity(await self.collection.find_one(query))

    @persistence_operation("find_all")
    async def find_all(
        self,
        query: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 0,
        sort: Optional[List[Tuple[str, int]]] = None
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query or {})
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=None)
        return [to_entity(d) for d in docs]

    @persistence_operation("count")
    async def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(query or {})

    async def exists(self, entity_id: str) -> bool:
        return await self.count({"_id": entity_id}) > 0


# =============================================================================
# LOA
# =============================================================================

SORTABLE_LOA_FIELDS = {"created_at", "updated_at", "loa_number", "loa_value", "status"}


@dataclass
class LoaFilter:
    """Plain field predicates for listing LOAs"""
    search_term: Optional[str] = None
    site_id: Optional[str] = None
    tender_id: Optional[str] = None
    status: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    has_emd: Optional[bool] = None
    has_sd: Optional[bool] = None
    has_pg: Optional[bool] = None

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}

        if self.search_term:
            pattern = {"$regex": re.escape(self.search_term.strip()), "$options": "i"}
            query["$or"] = [
                {"loa_number": pattern},
                {"work_description": pattern},
                {"tender_no": pattern},
            ]

        for field_name in ("site_id", "tender_id", "status", "has_emd", "has_sd", "has_pg"):
            value = getattr(self, field_name)
            if value is not None:
                query[field_name] = value

        value_range = {}
        if self.min_value is not None:
            value_range["$gte"] = self.min_value
        if self.max_value is not None:
            value_range["$lte"] = self.max_value
        if value_range:
            query["loa_value"] = value_range

        return query


class LoaRepository(MotorRepository):
    collection_name = "loas"

    async def find_by_loa_number(self, loa_number: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"loa_number": loa_number})

    async def find_page(
        self,
        loa_filter: LoaFilter,
        skip: int,
        limit: int,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        sort_field = sort_by if sort_by in SORTABLE_LOA_FIELDS else "created_at"
        direction = ASCENDING if sort_order == "asc" else DESCENDING
        return await self.find_all(loa_filter.to_query(), skip=skip, limit=limit, sort=[(sort_field, direction)])

    async def count_matching(self, loa_filter: LoaFilter) -> int:
        return await self.count(loa_filter.to_query())


# =============================================================================
# LOA CHILDREN
# =============================================================================

class BillRepository(MotorRepository):
    collection_name = "bills"

    async def find_by_loa_id(self, loa_id: str) -> List[Dict[str, Any]]:
        """Most recently created first"""
        return await self.find_all({"loa_id": loa_id}, sort=[("created_at", DESCENDING)])

    async def count_by_loa_id(self, loa_id: str) -> int:
        return await self.count({"loa_id": loa_id})


class AmendmentRepository(MotorRepository):
    collection_name = "amendments"

    async def find_by_loa_id(self, loa_id: str) -> List[Dict[str, Any]]:
        return await self.find_all({"loa_id": loa_id}, sort=[("created_at", DESCENDING)])


class OtherDocumentRepository(MotorRepository):
    collection_name = "other_documents"

    async def find_by_loa_id(self, loa_id: str) -> List[Dict[str, Any]]:
        return await self.find_all({"loa_id": loa_id}, sort=[("created_at", DESCENDING)])


# =============================================================================
# COLLABORATOR COLLECTIONS
# =============================================================================

class TenderRepository(MotorRepository):
    collection_name = "tenders"

    async def find_by_tender_number(self, tender_number: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"tender_number": tender_number})


class PurchaseOrderRepository(MotorRepository):
    collection_name = "purchase_orders"

    async def count_by_loa_id(self, loa_id: str) -> int:
        return await self.count({"loa_id": loa_id})


class FdrRepository(MotorRepository):
    collection_name = "fdrs"


class LoaFdrLinkRepository(MotorRepository):
    collection_name = "loa_fdr_links"

    async def find_link(self, loa_id: str, fdr_id: str) -> Optional[Dict[str, Any]]:
        return await self.find_one({"loa_id": loa_id, "fdr_id": fdr_id})

    async def find_by_loa_id(self, loa_id: str) -> List[Dict[str, Any]]:
        return await self.find_all({"loa_id": loa_id}, sort=[("linked_at", DESCENDING)])


class Repositories:
    """All repositories over one database"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.loas = LoaRepository(db)
        self.bills = BillRepository(db)
        self.amendments = AmendmentRepository(db)
        self.other_documents = OtherDocumentRepository(db)
        self.tenders = TenderRepository(db)
        self.purchase_orders = PurchaseOrderRepository(db)
        self.fdrs = FdrRepository(db)
        self.fdr_links = LoaFdrLinkRepository(db)
