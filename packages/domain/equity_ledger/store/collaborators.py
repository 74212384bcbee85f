"""External collaborators consumed by the ledger store.

The ledger does not own file storage, employee records, the validation-request
workflow or investor identities. It reaches them through the protocols below.
In-memory implementations are provided for tests and local runs.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from ..schemas import EmployeeAllocation, FundraisingRound, InvestmentRecord

logger = logging.getLogger(__name__)


# =============================================================================
# File storage
# =============================================================================

class StorageError(Exception):
    """Raised by FileStorage implementations when an upload or lookup fails."""


@dataclass(frozen=True)
class UploadedFile:
    """A document handed to the store for upload."""

    filename: str
    content: bytes
    content_type: Optional[str] = None


class FileStorage(Protocol):
    def upload(self, path: str, file: UploadedFile) -> str:
        """Store the file under `path` and return its reference URL."""
        ...

    def download_url(self, path: str) -> str:
        """URL from which the file at `path` can be downloaded."""
        ...


PUBLIC_MARKERS = ("/storage/v1/object/public/", "/storage/v1/object/sign/")


def extract_storage_path(reference: str) -> Optional[str]:
    """Storage path embedded in a storage URL, or None if the URL has no known marker."""
    for marker in PUBLIC_MARKERS:
        if marker in reference:
            return reference.split(marker, 1)[1]
    return None


def document_path(company_id: int, folder: str, filename: str) -> str:
    """Storage path for a company document: ``<company>/<folder>/<millis>_<name>``."""
    return f"{company_id}/{folder}/{int(time.time() * 1000)}_{filename}"


class InMemoryFileStorage:
    """FileStorage keeping uploaded bytes in a dict.

    References look like public storage URLs so that extract_storage_path()
    can resolve them back to paths.
    """

    def __init__(self, bucket: str = "cap-table-documents", base_url: str = "https://storage.local"):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.files: Dict[str, UploadedFile] = {}
        self.fail_uploads = False

    def upload(self, path: str, file: UploadedFile) -> str:
        if self.fail_uploads:
            raise StorageError(f"bucket {self.bucket} rejected {file.filename}")
        self.files[path] = file
        return self.download_url(path)

    def download_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"


# =============================================================================
# Employee directory
# =============================================================================

class EmployeeDirectory(Protocol):
    def list_employees(self, company_id: int) -> List[EmployeeAllocation]:
        ...


@dataclass
class StaticEmployeeDirectory:
    """EmployeeDirectory over a fixed mapping of company id to allocations."""

    employees: Dict[int, List[EmployeeAllocation]] = field(default_factory=dict)

    def list_employees(self, company_id: int) -> List[EmployeeAllocation]:
        return list(self.employees.get(company_id, []))


# =============================================================================
# Validation-request workflow
# =============================================================================

class ValidationRequestWorkflow(Protocol):
    def request_validation(self, company_id: int, fundraising_round: FundraisingRound) -> None:
        """Create or update the validation request for this company's round."""
        ...

    def withdraw_validation(self, company_id: int) -> None:
        """Remove any open validation request for this company."""
        ...


@dataclass
class InMemoryValidationWorkflow:
    """Tracks open validation requests per company."""

    requests: Dict[int, FundraisingRound] = field(default_factory=dict)

    def request_validation(self, company_id: int, fundraising_round: FundraisingRound) -> None:
        self.requests[company_id] = fundraising_round

    def withdraw_validation(self, company_id: int) -> None:
        self.requests.pop(company_id, None)


# =============================================================================
# Investor links
# =============================================================================

class InvestorLinkRegistry(Protocol):
    """Cross-references between ledger records and investor identities (investor codes)."""

    def link(self, company_id: int, record: InvestmentRecord) -> None:
        ...

    def unlink(self, company_id: int, record: InvestmentRecord) -> None:
        ...


@dataclass
class InMemoryInvestorLinks:
    links: Dict[Tuple[int, int], str] = field(default_factory=dict)

    def link(self, company_id: int, record: InvestmentRecord) -> None:
        self.links[(company_id, record.id)] = record.investor_code

    def unlink(self, company_id: int, record: InvestmentRecord) -> None:
        self.links.pop((company_id, record.id), None)
