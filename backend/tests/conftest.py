"""
Shared fixtures: in-memory Motor database, recording storage double, seed helpers
"""
import asyncio
import base64
import uuid

import pytest
from mongomock_motor import AsyncMongoMockClient

from loa_core.loa_lifecycle import LoaService
from loa_core.models import LoaCreate, UploadedDocument
from loa_core.repositories import Repositories
from loa_core.results import StorageError


class RecordingStorage:
    """Storage collaborator double; uploads whose key starts with a prefix in fail_on raise"""

    def __init__(self, fail_on=None, fail_delete=False):
        self.fail_on = list(fail_on or [])
        self.fail_delete = fail_delete
        self.files = {}
        self.uploaded_keys = []
        self.deleted = []

    async def upload(self, key, data, content_type):
        if any(key.startswith(prefix) for prefix in self.fail_on):
            raise StorageError(key, "upload", RuntimeError("storage unavailable"))
        url = f"memory://{key}"
        self.files[url] = (data, content_type)
        self.uploaded_keys.append(key)
        return url

    async def delete(self, url):
        if self.fail_delete:
            raise StorageError(url, "delete", RuntimeError("storage unavailable"))
        self.files.pop(url, None)
        self.deleted.append(url)


def run(coro):
    return asyncio.run(coro)


def pdf(file_name="document.pdf"):
    return UploadedDocument(
        file_name=file_name,
        content_type="application/pdf",
        data=base64.b64encode(b"%PDF-1.4 test document").decode()
    )


def new_id():
    return str(uuid.uuid4())


def loa_payload(**overrides):
    payload = {
        "loa_number": "LOA/2024/001",
        "loa_value": 100000.0,
        "delivery_period": {"start": "2024-01-01T00:00:00", "end": "2024-06-30T00:00:00"},
        "work_description": "Supply of signalling cables",
        "site_id": new_id(),
    }
    payload.update(overrides)
    return payload


def make_loa(**overrides):
    return LoaCreate(**loa_payload(**overrides))


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client["procurement_test"]


@pytest.fixture
def repos(db):
    return Repositories(db)


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def service(repos, storage):
    return LoaService(repos, storage)


@pytest.fixture
def seeded_loa(service):
    """A stored LOA without bills"""
    result = run(service.create_loa(make_loa()))
    assert result.is_success, result.errors
    return result.data


@pytest.fixture
def seed_tender(repos):
    def _seed(**fields):
        tender = {"tender_number": "TND-001", "has_emd": True, "emd_amount": 500.0}
        tender.update(fields)
        return run(repos.tenders.create(tender))
    return _seed


@pytest.fixture
def seed_fdr(repos):
    def _seed(**fields):
        fdr = {"bank_name": "State Bank", "deposit_amount": 25000.0, "category": "FD"}
        fdr.update(fields)
        return run(repos.fdrs.create(fdr))
    return _seed
