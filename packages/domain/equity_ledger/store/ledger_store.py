"""Ledger store: authoritative reads and writes of a company's equity ledger.

LedgerStore is a service object constructed with its persistence backend and
collaborators. It holds no per-company state; every call is scoped by the
company id it is given.

Write semantics:
    - Drafts are validated before any write. A rejected draft returns an
      OperationResult carrying a ValidationError; nothing is written.
    - Uploads run after validation and before the insert. An upload failure
      raises UploadError and the insert is never attempted. A file uploaded for
      a save that later fails is not cleaned up.
    - Backend failures raise PersistenceError with a categorized kind.
    - Side effects (funding rollback, validation requests, investor links) run
      after the primary write. Their failures become DependentOperationWarnings
      on the result and never undo the primary write.
    - Every successful write publishes a change token.

Example:
    store = LedgerStore(InMemoryBackend(), changes=ChangeFeed())
    store.open_company_account(1, total_funding=Decimal("250000"))

    result = store.add_investment_record(1, {
        "date": date(2024, 3, 1),
        "investor_type": "VC Firm",
        "round_type": "Equity",
        "investor_name": "SeedFund Ventures",
        "amount": Decimal("100000"),
        "equity_allocated_percent": Decimal("10"),
    })
    result.value.post_money_valuation  # Decimal("1000000")
"""

import datetime
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..changes import ChangeFeed, EntityType
from ..config import LedgerSettings, get_settings
from ..errors import (
    DependentOperationWarning,
    PersistenceError,
    UploadError,
    ValidationError,
)
from ..schemas import (
    CompanyLedgerAccount,
    EsopPool,
    Founder,
    FundraisingDraft,
    FundraisingRound,
    InvestmentDraft,
    InvestmentFilters,
    InvestmentRecord,
    InvestmentUpdate,
    LedgerSnapshot,
    ShareConfiguration,
)
from .backend import BackendError, InMemoryBackend, LedgerBackend, Row
from .collaborators import (
    EmployeeDirectory,
    FileStorage,
    InMemoryFileStorage,
    InvestorLinkRegistry,
    StorageError,
    UploadedFile,
    ValidationRequestWorkflow,
    document_path,
    extract_storage_path,
)
from .compensation import CompensationQueue, FundingRollback
from .mapping import (
    COMPANIES,
    ESOP_POOLS,
    FOUNDERS,
    FUNDRAISING_DETAILS,
    INVESTMENT_RECORDS,
    SHARE_CONFIGURATIONS,
    account_to_row,
    company_filter,
    esop_pool_to_row,
    founder_to_row,
    fundraising_to_row,
    investment_fields_to_columns,
    investment_to_row,
    row_to_account,
    row_to_esop_pool,
    row_to_founder,
    row_to_fundraising,
    row_to_investment,
    row_to_share_configuration,
    share_configuration_to_row,
)
from .results import OperationResult

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def to_validation_error(exc: PydanticValidationError) -> ValidationError:
    """Translate the first pydantic error into a ledger ValidationError."""
    first = exc.errors()[0]
    ctx = first.get("ctx") or {}
    field = ctx.get("field") or ".".join(str(part) for part in first.get("loc", ())) or "draft"
    reason = first.get("msg", "invalid value")
    if reason.startswith("Value error, "):
        reason = reason[len("Value error, "):]
    return ValidationError(field, reason, details={"errors": len(exc.errors())})


def coerce_share_count(field: str, value: Any) -> int:
    """Whole, finite, non-negative share count.

    Raises:
        ValidationError: If the value is not a number, not finite, negative or fractional
    """
    if isinstance(value, bool):
        raise ValidationError(field, "must be a number")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, "must be a number")
    if not number.is_finite():
        raise ValidationError(field, "must be finite")
    if number < 0:
        raise ValidationError(field, "cannot be negative")
    if number != number.to_integral_value():
        raise ValidationError(field, "must be a whole number of shares")
    return int(number)


class LedgerStore:
    """CRUD for investment records, founders, fundraising round, share configuration and ESOP pool."""

    def __init__(
        self,
        backend: LedgerBackend,
        *,
        file_storage: Optional[FileStorage] = None,
        employees: Optional[EmployeeDirectory] = None,
        validation_workflow: Optional[ValidationRequestWorkflow] = None,
        investor_links: Optional[InvestorLinkRegistry] = None,
        changes: Optional[ChangeFeed] = None,
        settings: Optional[LedgerSettings] = None,
        today: Optional[Callable[[], datetime.date]] = None,
    ):
        self.backend = backend
        self.file_storage = file_storage
        self.employees = employees
        self.validation_workflow = validation_workflow
        self.investor_links = investor_links
        self.changes = changes
        self.settings = settings or get_settings()
        self._today = today or datetime.date.today
        self.compensations = CompensationQueue(backend, max_attempts=self.settings.COMPENSATION_MAX_ATTEMPTS)

    @classmethod
    def in_memory(cls, **kwargs) -> "LedgerStore":
        """Store over an InMemoryBackend and InMemoryFileStorage configured from settings."""
        settings = kwargs.get("settings") or get_settings()
        storage_kwargs = {"bucket": settings.DOCUMENT_BUCKET}
        if settings.PUBLIC_STORAGE_URL:
            storage_kwargs["base_url"] = settings.PUBLIC_STORAGE_URL
        kwargs.setdefault("file_storage", InMemoryFileStorage(**storage_kwargs))
        kwargs.setdefault("changes", ChangeFeed())
        return cls(InMemoryBackend(), **kwargs)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _call(self, operation: str, fn: Callable[..., List[Row]], *args) -> List[Row]:
        try:
            return fn(*args)
        except BackendError as exc:
            error = PersistenceError.from_code(exc.code, operation=operation, message=exc.message)
            logger.error("%s failed (%s): %s", operation, error.kind.value, exc.message)
            raise error from exc

    def _validate(self, model: Type[M], data: Union[M, Mapping[str, Any]], **context: Any) -> M:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        context.update(today=self._today(), max_age_years=self.settings.MAX_RECORD_AGE_YEARS)
        try:
            return model.model_validate(data, context=context)
        except PydanticValidationError as exc:
            raise to_validation_error(exc) from exc

    def _upload(self, company_id: int, folder: str, file: UploadedFile) -> str:
        if self.file_storage is None:
            raise UploadError(file.filename, "no file storage configured")
        path = document_path(company_id, folder, file.filename)
        try:
            url = self.file_storage.upload(path, file)
        except (StorageError, OSError) as exc:
            logger.error("Upload of %s for company %s failed: %s", file.filename, company_id, exc)
            raise UploadError(file.filename, str(exc)) from exc
        logger.info("Uploaded %s for company %s", path, company_id)
        return url

    def _side_effect(self, operation: str, fn: Callable[..., None], *args) -> List[DependentOperationWarning]:
        try:
            fn(*args)
        except Exception as exc:
            logger.warning("%s failed: %s", operation, exc, exc_info=True)
            return [DependentOperationWarning(operation, str(exc))]
        return []

    def _publish(self, company_id: int, *entity_types: EntityType) -> None:
        if self.changes is None:
            return
        for entity_type in entity_types:
            self.changes.publish(company_id, entity_type)

    def _upsert(self, table: str, company_id: int, row: Row) -> Row:
        filters = company_filter(company_id)
        existing = self._call(f"read {table}", self.backend.get, table, filters)
        if existing:
            rows = self._call(f"update {table}", self.backend.update, table, filters, row)
        else:
            rows = self._call(f"insert {table}", self.backend.insert, table, [row])
        return rows[0]

    def _get_record(self, company_id: int, record_id: int) -> Optional[InvestmentRecord]:
        rows = self._call(
            "read investment record",
            self.backend.get,
            INVESTMENT_RECORDS,
            {**company_filter(company_id), "id": record_id},
        )
        return row_to_investment(rows[0]) if rows else None

    # ------------------------------------------------------------------ #
    # Investment records
    # ------------------------------------------------------------------ #

    def list_investment_records(
        self,
        company_id: int,
        filters: Optional[InvestmentFilters] = None,
    ) -> List[InvestmentRecord]:
        """Investment records of a company in insertion order."""
        rows = self._call("list investment records", self.backend.get, INVESTMENT_RECORDS, company_filter(company_id))
        records = [row_to_investment(row) for row in rows]
        if filters is not None:
            records = [r for r in records if filters.matches(r)]
        return records

    def add_investment_record(
        self,
        company_id: int,
        draft: Union[InvestmentDraft, Mapping[str, Any]],
        proof_document: Optional[UploadedFile] = None,
    ) -> OperationResult[InvestmentRecord]:
        """Validate and append an investment record.

        Args:
            company_id: Company owning the record
            draft: Investment data; post_money_valuation is derived when omitted
            proof_document: Optional proof of investment, uploaded before the insert

        Returns:
            OperationResult with the stored record, or with a ValidationError

        Raises:
            UploadError: If the proof document could not be uploaded (nothing inserted)
            PersistenceError: If the backend rejects the insert
        """
        try:
            validated = self._validate(InvestmentDraft, draft)
        except ValidationError as err:
            logger.info("Rejected investment for company %s: %s", company_id, err.message)
            return OperationResult.failure(err)

        if proof_document is not None:
            proof_url = self._upload(company_id, "investment-proofs", proof_document)
            validated = validated.model_copy(update={"proof_url": proof_url})

        rows = self._call(
            "insert investment record",
            self.backend.insert,
            INVESTMENT_RECORDS,
            [investment_to_row(company_id, validated)],
        )
        record = row_to_investment(rows[0])
        logger.info(
            "Added %s investment %s for company %s: amount=%s equity=%s%% post_money=%s",
            record.round_type, record.id, company_id,
            record.amount, record.equity_allocated_percent, record.post_money_valuation,
        )

        warnings: List[DependentOperationWarning] = []
        if record.investor_code and self.investor_links is not None:
            warnings += self._side_effect("investor_link", self.investor_links.link, company_id, record)

        self._publish(company_id, EntityType.INVESTMENT_RECORDS)
        return OperationResult.success(record, warnings)

    def update_investment_record(
        self,
        company_id: int,
        record_id: int,
        changes: Union[InvestmentUpdate, Mapping[str, Any]],
    ) -> OperationResult[InvestmentRecord]:
        """Directly edit a stored record.

        The merged record is re-validated as a draft. The stored post-money
        valuation is kept unless the edit supplies a new one: changing amount or
        equity does not re-derive it.

        The date window is only checked when the edit changes the date, so an
        aged record stays editable.
        """
        if not isinstance(changes, InvestmentUpdate):
            try:
                changes = InvestmentUpdate.model_validate(dict(changes))
            except PydanticValidationError as exc:
                return OperationResult.failure(to_validation_error(exc))
        edits = changes.changes()

        existing = self._get_record(company_id, record_id)
        if existing is None:
            return OperationResult.failure(ValidationError("record_id", f"investment record {record_id} not found"))

        try:
            validated = self._validate(
                InvestmentDraft, {**existing.as_draft_data(), **edits}, check_date="date" in edits
            )
        except ValidationError as err:
            logger.info("Rejected edit of investment %s: %s", record_id, err.message)
            return OperationResult.failure(err)

        rows = self._call(
            "update investment record",
            self.backend.update,
            INVESTMENT_RECORDS,
            {**company_filter(company_id), "id": record_id},
            investment_fields_to_columns(validated.model_dump()),
        )
        record = row_to_investment(rows[0])
        logger.info("Updated investment %s for company %s (%s)", record_id, company_id, ", ".join(sorted(edits)))

        warnings: List[DependentOperationWarning] = []
        if self.investor_links is not None and existing.investor_code != record.investor_code:
            if existing.investor_code:
                warnings += self._side_effect("investor_unlink", self.investor_links.unlink, company_id, existing)
            if record.investor_code:
                warnings += self._side_effect("investor_link", self.investor_links.link, company_id, record)

        self._publish(company_id, EntityType.INVESTMENT_RECORDS)
        return OperationResult.success(record, warnings)

    def delete_investment_record(self, company_id: int, record_id: int) -> OperationResult[InvestmentRecord]:
        """Delete a record, then roll its amount back out of the company total funding.

        The delete and the rollback are separate writes. The rollback is queued
        with idempotency key ``funding-rollback:<record_id>`` and attempted once
        immediately; if it fails the delete still stands, a warning is returned
        and the rollback stays queued for retry_compensations(). Only this
        company's queued rollbacks are attempted.
        """
        existing = self._get_record(company_id, record_id)
        if existing is None:
            return OperationResult.failure(ValidationError("record_id", f"investment record {record_id} not found"))

        self._call(
            "delete investment record",
            self.backend.delete,
            INVESTMENT_RECORDS,
            {**company_filter(company_id), "id": record_id},
        )
        logger.info("Deleted investment %s (amount=%s) for company %s", record_id, existing.amount, company_id)

        self.compensations.enqueue(FundingRollback(company_id=company_id, record_id=record_id, amount=existing.amount))
        warnings = self.compensations.drain(company_id)

        if existing.investor_code and self.investor_links is not None:
            warnings += self._side_effect("investor_unlink", self.investor_links.unlink, company_id, existing)

        self._publish(company_id, EntityType.INVESTMENT_RECORDS, EntityType.COMPANY)
        return OperationResult.success(existing, warnings)

    def attachment_download_url(self, reference: str) -> OperationResult[str]:
        """Download URL for a stored document reference (e.g. a record's proof_url)."""
        if reference.startswith("http") and extract_storage_path(reference) is None:
            return OperationResult.success(reference)
        path = extract_storage_path(reference)
        if path is None:
            return OperationResult.failure(ValidationError("reference", "invalid file URL"))
        if self.file_storage is None:
            return OperationResult.success(reference)
        bucket_prefix = f"{self.settings.DOCUMENT_BUCKET}/"
        if path.startswith(bucket_prefix):
            path = path[len(bucket_prefix):]
        return OperationResult.success(self.file_storage.download_url(path))

    # ------------------------------------------------------------------ #
    # Founders
    # ------------------------------------------------------------------ #

    def list_founders(self, company_id: int) -> List[Founder]:
        rows = self._call("list founders", self.backend.get, FOUNDERS, company_filter(company_id))
        return [row_to_founder(row) for row in rows]

    def replace_founders(
        self,
        company_id: int,
        founders: Sequence[Union[Founder, Mapping[str, Any]]],
    ) -> OperationResult[List[Founder]]:
        """Replace all founders of a company (delete all, then insert all).

        Founder row identities are not preserved across calls.
        """
        validated: List[Founder] = []
        for index, founder in enumerate(founders):
            try:
                validated.append(self._validate(Founder, founder))
            except ValidationError as err:
                err.field = f"founders[{index}].{err.field}"
                return OperationResult.failure(err)

        self._call("delete founders", self.backend.delete, FOUNDERS, company_filter(company_id))
        if validated:
            self._call(
                "insert founders",
                self.backend.insert,
                FOUNDERS,
                [founder_to_row(company_id, f) for f in validated],
            )
        logger.info("Replaced founders for company %s (%d founder(s))", company_id, len(validated))

        self._publish(company_id, EntityType.FOUNDERS)
        return OperationResult.success(validated)

    # ------------------------------------------------------------------ #
    # Shares and ESOP
    # ------------------------------------------------------------------ #

    def get_share_configuration(self, company_id: int) -> ShareConfiguration:
        rows = self._call("read share configuration", self.backend.get, SHARE_CONFIGURATIONS, company_filter(company_id))
        if not rows:
            return ShareConfiguration(company_id=company_id, total_shares=0)
        return row_to_share_configuration(rows[0])

    def upsert_share_configuration(self, company_id: int, total_shares: Any) -> OperationResult[ShareConfiguration]:
        """Set a company's total shares.

        Total shares may drop below the reserved ESOP shares: the reserve is only
        checked against total shares when the reserve itself is edited.
        """
        try:
            shares = coerce_share_count("total_shares", total_shares)
        except ValidationError as err:
            return OperationResult.failure(err)

        config = ShareConfiguration(company_id=company_id, total_shares=shares)
        row = self._upsert(SHARE_CONFIGURATIONS, company_id, share_configuration_to_row(config))
        logger.info("Total shares for company %s set to %s", company_id, shares)

        self._publish(company_id, EntityType.SHARE_CONFIGURATION)
        return OperationResult.success(row_to_share_configuration(row))

    def get_esop_pool(self, company_id: int) -> EsopPool:
        rows = self._call("read esop pool", self.backend.get, ESOP_POOLS, company_filter(company_id))
        if not rows:
            return EsopPool(company_id=company_id, reserved_shares=0)
        return row_to_esop_pool(rows[0])

    def upsert_esop_reserved_shares(self, company_id: int, reserved_shares: Any) -> OperationResult[EsopPool]:
        """Set the ESOP reserve; rejected when it exceeds the current total shares."""
        try:
            reserved = coerce_share_count("reserved_shares", reserved_shares)
        except ValidationError as err:
            return OperationResult.failure(err)

        total = self.get_share_configuration(company_id).total_shares
        if reserved > total:
            return OperationResult.failure(
                ValidationError(
                    "reserved_shares",
                    f"reserved shares ({reserved}) cannot exceed total shares ({total})",
                )
            )

        pool = EsopPool(company_id=company_id, reserved_shares=reserved)
        row = self._upsert(ESOP_POOLS, company_id, esop_pool_to_row(pool))
        logger.info("ESOP reserve for company %s set to %s of %s shares", company_id, reserved, total)

        self._publish(company_id, EntityType.ESOP_POOL)
        return OperationResult.success(row_to_esop_pool(row))

    # ------------------------------------------------------------------ #
    # Fundraising
    # ------------------------------------------------------------------ #

    def get_fundraising_round(self, company_id: int) -> Optional[FundraisingRound]:
        rows = self._call("read fundraising round", self.backend.get, FUNDRAISING_DETAILS, company_filter(company_id))
        return row_to_fundraising(rows[-1]) if rows else None

    def set_fundraising_round(
        self,
        company_id: int,
        draft: Union[FundraisingDraft, Mapping[str, Any]],
        pitch_deck: Optional[UploadedFile] = None,
    ) -> OperationResult[FundraisingRound]:
        """Save the company's fundraising round (one per company, last write replaces).

        After the save the validation-request workflow is asked to open a request
        (validation_requested=True) or withdraw one (False). A workflow failure is
        a warning; the saved round stands.

        Raises:
            UploadError: If the pitch deck could not be uploaded (round not saved)
            PersistenceError: If the backend rejects the save
        """
        try:
            validated = self._validate(FundraisingDraft, draft)
        except ValidationError as err:
            logger.info("Rejected fundraising round for company %s: %s", company_id, err.message)
            return OperationResult.failure(err)

        if pitch_deck is not None:
            deck_url = self._upload(company_id, "pitch-decks", pitch_deck)
            validated = validated.model_copy(update={"pitch_deck_url": deck_url})

        row = self._upsert(FUNDRAISING_DETAILS, company_id, fundraising_to_row(company_id, validated))
        fundraising_round = row_to_fundraising(row)
        logger.info(
            "Fundraising round for company %s saved: %s %s (%s)",
            company_id, fundraising_round.round_stage, fundraising_round.target_value,
            fundraising_round.status.value,
        )

        warnings: List[DependentOperationWarning] = []
        if self.validation_workflow is not None:
            if fundraising_round.validation_requested:
                warnings += self._side_effect(
                    "validation_request", self.validation_workflow.request_validation, company_id, fundraising_round
                )
            else:
                warnings += self._side_effect(
                    "validation_withdrawal", self.validation_workflow.withdraw_validation, company_id
                )

        self._publish(company_id, EntityType.FUNDRAISING_ROUND)
        return OperationResult.success(fundraising_round, warnings)

    # ------------------------------------------------------------------ #
    # Company account
    # ------------------------------------------------------------------ #

    def get_company_account(self, company_id: int) -> CompanyLedgerAccount:
        rows = self._call("read company", self.backend.get, COMPANIES, {"id": company_id})
        if not rows:
            return CompanyLedgerAccount(company_id=company_id)
        return row_to_account(rows[0])

    def open_company_account(
        self,
        company_id: int,
        total_funding: Decimal = Decimal("0"),
        current_valuation: Optional[Decimal] = None,
    ) -> CompanyLedgerAccount:
        """Create or overwrite the company aggregate row (total funding, fallback valuation).

        Rollback keys already applied to an existing row are kept.
        """
        rows = self._call("read company", self.backend.get, COMPANIES, {"id": company_id})
        applied = row_to_account(rows[0]).applied_compensations if rows else []
        account = CompanyLedgerAccount(
            company_id=company_id,
            total_funding=total_funding,
            current_valuation=current_valuation,
            applied_compensations=applied,
        )
        row = account_to_row(account)
        if rows:
            values = {k: v for k, v in row.items() if k != "id"}
            self._call("update company", self.backend.update, COMPANIES, {"id": company_id}, values)
        else:
            self._call("insert company", self.backend.insert, COMPANIES, [row])

        self._publish(company_id, EntityType.COMPANY)
        return account

    def recompute_total_funding(self, company_id: int) -> CompanyLedgerAccount:
        """Reset total funding to the sum of the company's record amounts.

        This is the full recompute path that repairs an aggregate left stale by
        an abandoned rollback.

        The recomputed sum already excludes deleted records, so rollbacks still
        queued for this company are marked applied in the same update and
        dropped from the queue.
        """
        records = self.list_investment_records(company_id)
        total = sum((r.amount for r in records), Decimal("0"))
        account = self.get_company_account(company_id)
        if total != account.total_funding:
            logger.warning(
                "Total funding for company %s corrected from %s to %s",
                company_id, account.total_funding, total,
            )
        pending = self.compensations.pending_for(company_id)
        superseded = [key for key in pending if key not in account.applied_compensations]
        account = account.model_copy(update={
            "total_funding": total,
            "applied_compensations": account.applied_compensations + superseded,
        })

        if self._call("read company", self.backend.get, COMPANIES, {"id": company_id}):
            values = {
                "total_funding": str(total),
                "applied_compensations": list(account.applied_compensations),
            }
            self._call("update company", self.backend.update, COMPANIES, {"id": company_id}, values)
        else:
            self._call("insert company", self.backend.insert, COMPANIES, [account_to_row(account)])
        if pending:
            logger.info("Recompute for company %s superseded %s", company_id, ", ".join(pending))
            self.compensations.discard(pending)

        self._publish(company_id, EntityType.COMPANY)
        return account

    def retry_compensations(self) -> List[DependentOperationWarning]:
        """Re-attempt queued compensating actions that failed earlier."""
        if not len(self.compensations):
            return []
        logger.info("Retrying %d queued compensation(s)", len(self.compensations))
        return self.compensations.drain()

    # ------------------------------------------------------------------ #
    # Snapshot
    # ------------------------------------------------------------------ #

    def load_snapshot(self, company_id: int) -> LedgerSnapshot:
        """Read everything known about a company into a fresh LedgerSnapshot."""
        employees = self.employees.list_employees(company_id) if self.employees is not None else []
        return LedgerSnapshot(
            company_id=company_id,
            records=self.list_investment_records(company_id),
            founders=self.list_founders(company_id),
            share_configuration=self.get_share_configuration(company_id),
            esop_pool=self.get_esop_pool(company_id),
            fundraising_round=self.get_fundraising_round(company_id),
            account=self.get_company_account(company_id),
            employees=employees,
        )
