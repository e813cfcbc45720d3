from fastapi import FastAPI, APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import os
import logging
from pathlib import Path
from typing import Optional

from loa_core.loa_lifecycle import LoaService
from loa_core.repositories import Repositories
from loa_core.results import ProcurementError
from storage_service import GridFSStorageService
from loa_routes import create_loa_routes
from bill_routes import create_bill_routes

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(db: Optional[AsyncIOMotorDatabase] = None, storage=None) -> FastAPI:
    """
    Build the API.

    db and storage default to the MongoDB database and GridFS bucket named by
    the environment; tests pass their own.
    """
    client = None
    if db is None:
        client = AsyncIOMotorClient(os.environ.get('MONGO_URL', 'mongodb://localhost:27017'))
        db = client[os.environ.get('DB_NAME', 'procurement')]

    if storage is None:
        storage = GridFSStorageService(
            db,
            bucket_name=os.environ.get('DOCUMENT_BUCKET', 'documents'),
            base_url=os.environ.get('DOCUMENT_BASE_URL', '/api/documents'),
            upload_retries=int(os.environ.get('STORAGE_UPLOAD_RETRIES', '3'))
        )

    loa_service = LoaService(Repositories(db), storage)

    app = FastAPI(
        title="Procurement LOA Service",
        version="1.0.0",
        description="LOA lifecycle, billing reconciliation and deposit linkage"
    )

    api_router = APIRouter(prefix="/api")

    @api_router.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "loa"}

    if isinstance(storage, GridFSStorageService):
        @api_router.get("/documents/{file_id}")
        async def download_document(file_id: str):
            document = await storage.download(file_id)
            if document is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
            content, content_type, key = document
            return Response(
                content=content,
                media_type=content_type,
                headers={"Content-Disposition": f'inline; filename="{os.path.basename(key)}"'}
            )

    @app.exception_handler(ProcurementError)
    async def procurement_error_handler(request: Request, exc: ProcurementError):
        logger.error(f"[API] {request.method} {request.url.path} failed in {exc.operation}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": {"message": exc.message, "operation": exc.operation}}
        )

    app.include_router(api_router)
    app.include_router(create_loa_routes(loa_service))
    app.include_router(create_bill_routes(loa_service.bill_ledger))

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if client is not None:
        @app.on_event("shutdown")
        async def shutdown_db_client():
            client.close()

    app.state.loa_service = loa_service
    return app


app = create_app()
