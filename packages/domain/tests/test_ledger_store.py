"""Tests for LedgerStore.

Tests cover:
- Investment record add / update / delete / list
- Validation results, upload ordering and persistence error mapping
- Funding rollback on delete and its retry path
- Founders, share configuration, ESOP reserve and fundraising round
- Company account, snapshot loading and attachment URLs
"""

import datetime
from decimal import Decimal

import pytest

from equity_ledger.changes import EntityType
from equity_ledger.errors import PersistenceError, PersistenceErrorKind, UploadError, ValidationError
from equity_ledger.schemas import InvestmentFilters, InvestmentUpdate
from equity_ledger.store import FundingRollback, LedgerStore, UploadedFile

COMPANY = 1
PROOF = UploadedFile(filename="term-sheet.pdf", content=b"%PDF-1.7", content_type="application/pdf")


class ExplodingCollaborator:
    """Validation workflow / investor registry whose every call fails."""

    def request_validation(self, company_id, fundraising_round):
        raise RuntimeError("validation service unavailable")

    def withdraw_validation(self, company_id):
        raise RuntimeError("validation service unavailable")

    def link(self, company_id, record):
        raise RuntimeError("investor directory unavailable")

    def unlink(self, company_id, record):
        raise RuntimeError("investor directory unavailable")


# =============================================================================
# Add investment record
# =============================================================================

class TestAddInvestmentRecord:

    def test_post_money_derived_and_stored(self, store, company, draft):
        result = store.add_investment_record(COMPANY, draft())

        assert result.ok
        assert result.value.id == 1
        assert result.value.post_money_valuation == Decimal("1000000")
        assert store.list_investment_records(COMPANY)[0].post_money_valuation == Decimal("1000000")

    def test_supplied_post_money_stored_as_is(self, store, company, draft):
        result = store.add_investment_record(COMPANY, draft(post_money_valuation=Decimal("1200000")))
        assert result.value.post_money_valuation == Decimal("1200000")

    def test_adding_does_not_change_total_funding(self, store, company, draft):
        store.add_investment_record(COMPANY, draft())
        assert store.get_company_account(COMPANY).total_funding == Decimal("250000")

    def test_validation_error_is_returned_not_raised(self, store, company, draft, backend):
        result = store.add_investment_record(COMPANY, draft(amount=Decimal("0")))

        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert result.error.field == "amount"
        assert backend.get("investment_records", {}) == []

    def test_underivable_post_money_reports_field(self, store, company, draft):
        result = store.add_investment_record(COMPANY, draft(equity_allocated_percent=Decimal("0")))

        assert result.error.field == "post_money_valuation"
        assert "required" in result.error.reason

    def test_future_date_relative_to_store_clock(self, store, company, draft, today):
        result = store.add_investment_record(COMPANY, draft(date=today + datetime.timedelta(days=1)))

        assert result.error.field == "date"
        assert result.error.reason == "date cannot be in the future"

    def test_unwrap_raises_validation_error(self, store, company, draft):
        result = store.add_investment_record(COMPANY, draft(investor_name=""))
        with pytest.raises(ValidationError):
            result.unwrap()

    def test_proof_uploaded_before_insert(self, store, company, draft, storage):
        result = store.add_investment_record(COMPANY, draft(), proof_document=PROOF)

        assert result.value.proof_url.endswith("_term-sheet.pdf")
        assert "/storage/v1/object/public/cap-table-documents/1/investment-proofs/" in result.value.proof_url
        assert len(storage.files) == 1

    def test_upload_failure_blocks_insert(self, store, company, draft, storage, backend):
        storage.fail_uploads = True

        with pytest.raises(UploadError, match="term-sheet.pdf"):
            store.add_investment_record(COMPANY, draft(), proof_document=PROOF)

        assert backend.get("investment_records", {}) == []

    def test_invalid_draft_never_uploads(self, store, company, draft, storage):
        result = store.add_investment_record(COMPANY, draft(amount=Decimal("-1")), proof_document=PROOF)

        assert not result.ok
        assert storage.files == {}

    @pytest.mark.parametrize(
        "code,kind",
        [
            ("42501", PersistenceErrorKind.PERMISSION_DENIED),
            ("23503", PersistenceErrorKind.FOREIGN_KEY_VIOLATION),
            ("23505", PersistenceErrorKind.UNIQUE_VIOLATION),
            ("23502", PersistenceErrorKind.NOT_NULL_VIOLATION),
            ("XX000", PersistenceErrorKind.UNKNOWN),
            (None, PersistenceErrorKind.UNKNOWN),
        ],
    )
    def test_persistence_error_kinds(self, store, company, draft, backend, code, kind):
        backend.fail_on("insert", "investment_records", code=code)

        with pytest.raises(PersistenceError) as exc_info:
            store.add_investment_record(COMPANY, draft())

        assert exc_info.value.kind == kind
        assert exc_info.value.operation == "insert investment record"
        assert exc_info.value.user_message

    def test_publishes_change(self, store, company, draft, feed):
        seen = []
        feed.listen(COMPANY, EntityType.INVESTMENT_RECORDS, seen.append)

        store.add_investment_record(COMPANY, draft())

        assert [token.entity_type for token in seen] == [EntityType.INVESTMENT_RECORDS]

    def test_investor_code_links_record(self, store, company, draft, links):
        result = store.add_investment_record(COMPANY, draft(investor_code="INV-42"))
        assert links.links == {(COMPANY, result.value.id): "INV-42"}

    def test_link_failure_is_a_warning(self, store, company, draft):
        store.investor_links = ExplodingCollaborator()

        result = store.add_investment_record(COMPANY, draft(investor_code="INV-42"))

        assert result.ok
        assert [w.operation for w in result.warnings] == ["investor_link"]
        assert len(store.list_investment_records(COMPANY)) == 1


# =============================================================================
# Update / list
# =============================================================================

class TestUpdateInvestmentRecord:

    def test_amount_change_keeps_stored_post_money(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft()).value

        result = store.update_investment_record(COMPANY, record.id, {"amount": Decimal("150000")})

        assert result.value.amount == Decimal("150000")
        assert result.value.post_money_valuation == Decimal("1000000")

    def test_explicit_post_money_replaces(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft()).value

        result = store.update_investment_record(
            COMPANY, record.id, InvestmentUpdate(post_money_valuation=Decimal("2500000"))
        )

        assert result.value.post_money_valuation == Decimal("2500000")
        assert store.list_investment_records(COMPANY)[0].post_money_valuation == Decimal("2500000")

    def test_invalid_edit_leaves_record_unchanged(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft()).value

        result = store.update_investment_record(COMPANY, record.id, {"equity_allocated_percent": Decimal("120")})

        assert not result.ok
        assert store.list_investment_records(COMPANY)[0].equity_allocated_percent == Decimal("10")

    def test_unknown_record(self, store, company):
        result = store.update_investment_record(COMPANY, 99, {"amount": Decimal("1")})
        assert result.error.field == "record_id"

    def test_investor_code_change_relinks(self, store, company, draft, links):
        record = store.add_investment_record(COMPANY, draft(investor_code="OLD")).value

        store.update_investment_record(COMPANY, record.id, {"investor_code": "NEW"})

        assert links.links == {(COMPANY, record.id): "NEW"}

    def test_aged_record_stays_editable(self, store, company, draft, backend, settings):
        record = store.add_investment_record(COMPANY, draft()).value
        later = LedgerStore(backend, settings=settings, today=lambda: datetime.date(2080, 1, 1))

        result = later.update_investment_record(COMPANY, record.id, {"investor_name": "Renamed Fund"})

        assert result.ok
        assert result.value.investor_name == "Renamed Fund"
        assert result.value.date == datetime.date(2024, 3, 1)

    def test_date_edit_is_checked_against_window(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft()).value

        result = store.update_investment_record(COMPANY, record.id, {"date": datetime.date(1960, 1, 1)})

        assert result.error.field == "date"
        assert store.list_investment_records(COMPANY)[0].date == datetime.date(2024, 3, 1)


def test_list_records_insertion_order_and_filters(store, company, draft):
    store.add_investment_record(COMPANY, draft(date=datetime.date(2024, 6, 1), investor_name="Late"))
    store.add_investment_record(COMPANY, draft(date=datetime.date(2023, 1, 1), investor_name="Early", round_type="Debt"))

    assert [r.investor_name for r in store.list_investment_records(COMPANY)] == ["Late", "Early"]
    debt = store.list_investment_records(COMPANY, InvestmentFilters(round_type="Debt"))
    assert [r.investor_name for r in debt] == ["Early"]
    assert store.list_investment_records(2) == []


# =============================================================================
# Delete
# =============================================================================

class TestDeleteInvestmentRecord:

    def test_deletion_reverses_funding(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft(amount=Decimal("80000"))).value

        result = store.delete_investment_record(COMPANY, record.id)

        assert result.ok
        assert result.warnings == []
        assert store.list_investment_records(COMPANY) == []
        account = store.get_company_account(COMPANY)
        assert account.total_funding == Decimal("170000")
        assert account.applied_compensations == [f"funding-rollback:{record.id}"]

    def test_rollback_failure_keeps_delete(self, store, company, draft, backend):
        record = store.add_investment_record(COMPANY, draft()).value
        backend.fail_on("update", "companies", code="42501")

        result = store.delete_investment_record(COMPANY, record.id)

        assert result.ok
        assert [w.operation for w in result.warnings] == ["funding_rollback"]
        assert result.warnings[0].idempotency_key == f"funding-rollback:{record.id}"
        assert store.list_investment_records(COMPANY) == []
        assert store.get_company_account(COMPANY).total_funding == Decimal("250000")
        assert store.compensations.pending_keys == [f"funding-rollback:{record.id}"]

    def test_retry_applies_queued_rollback_once(self, store, company, draft, backend):
        record = store.add_investment_record(COMPANY, draft()).value
        backend.fail_on("update", "companies")
        store.delete_investment_record(COMPANY, record.id)

        assert store.retry_compensations() == []
        assert store.retry_compensations() == []
        assert store.get_company_account(COMPANY).total_funding == Decimal("150000")
        assert len(store.compensations) == 0

    def test_recompute_supersedes_pending_rollback(self, store, company, draft, backend):
        store.add_investment_record(COMPANY, draft(amount=Decimal("200000")))
        record = store.add_investment_record(COMPANY, draft(amount=Decimal("100000"))).value
        store.recompute_total_funding(COMPANY)
        backend.fail_on("update", "companies")
        store.delete_investment_record(COMPANY, record.id)

        assert store.recompute_total_funding(COMPANY).total_funding == Decimal("200000")
        assert store.retry_compensations() == []

        account = store.get_company_account(COMPANY)
        assert account.total_funding == Decimal("200000")
        assert account.applied_compensations == [f"funding-rollback:{record.id}"]
        assert len(store.compensations) == 0

    def test_later_delete_does_not_replay_superseded_rollback(self, store, company, draft, backend):
        first = store.add_investment_record(COMPANY, draft(amount=Decimal("100000"))).value
        second = store.add_investment_record(COMPANY, draft(amount=Decimal("50000"))).value
        store.recompute_total_funding(COMPANY)
        backend.fail_on("update", "companies")
        store.delete_investment_record(COMPANY, first.id)
        store.recompute_total_funding(COMPANY)

        result = store.delete_investment_record(COMPANY, second.id)

        assert result.warnings == []
        assert store.get_company_account(COMPANY).total_funding == Decimal("0")

    def test_reopening_account_keeps_applied_rollbacks(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft()).value
        store.delete_investment_record(COMPANY, record.id)

        store.open_company_account(COMPANY, total_funding=Decimal("400000"))
        store.compensations.enqueue(FundingRollback(company_id=COMPANY, record_id=record.id, amount=record.amount))

        assert store.retry_compensations() == []
        account = store.get_company_account(COMPANY)
        assert account.total_funding == Decimal("400000")
        assert account.applied_compensations == [f"funding-rollback:{record.id}"]

    def test_delete_only_attempts_own_company_rollbacks(self, store, company, draft, backend):
        store.open_company_account(2, total_funding=Decimal("90000"))
        stale = store.add_investment_record(COMPANY, draft()).value
        backend.fail_on("update", "companies", times=2)
        store.delete_investment_record(COMPANY, stale.id)
        store.retry_compensations()
        other = store.add_investment_record(2, draft(amount=Decimal("30000"))).value

        result = store.delete_investment_record(2, other.id)

        assert result.warnings == []
        assert store.get_company_account(2).total_funding == Decimal("60000")
        assert store.compensations.pending_keys == [f"funding-rollback:{stale.id}"]
        assert store.get_company_account(COMPANY).total_funding == Decimal("250000")

    def test_missing_company_row_is_a_warning(self, store, draft):
        record = store.add_investment_record(COMPANY, draft()).value

        result = store.delete_investment_record(COMPANY, record.id)

        assert result.ok
        assert "not found" in result.warnings[0].reason

    def test_unknown_record(self, store, company):
        result = store.delete_investment_record(COMPANY, 404)
        assert result.error.field == "record_id"

    def test_delete_failure_raises_and_skips_rollback(self, store, company, draft, backend):
        record = store.add_investment_record(COMPANY, draft()).value
        backend.fail_on("delete", "investment_records", code="42501")

        with pytest.raises(PersistenceError):
            store.delete_investment_record(COMPANY, record.id)

        assert len(store.compensations) == 0
        assert store.get_company_account(COMPANY).total_funding == Decimal("250000")

    def test_unlinks_investor(self, store, company, draft, links):
        record = store.add_investment_record(COMPANY, draft(investor_code="INV-1")).value
        store.delete_investment_record(COMPANY, record.id)
        assert links.links == {}

    def test_publishes_records_and_company_changes(self, store, company, draft, feed):
        record = store.add_investment_record(COMPANY, draft()).value
        seen = []
        feed.listen(COMPANY, EntityType.INVESTMENT_RECORDS, seen.append)
        feed.listen(COMPANY, EntityType.COMPANY, seen.append)

        store.delete_investment_record(COMPANY, record.id)

        assert {token.entity_type for token in seen} == {EntityType.INVESTMENT_RECORDS, EntityType.COMPANY}


# =============================================================================
# Founders
# =============================================================================

class TestFounders:

    def test_replace_founders(self, store, company):
        store.replace_founders(COMPANY, [{"name": "Maya", "email": "maya@example.com"}])
        result = store.replace_founders(
            COMPANY,
            [
                {"name": "Tom", "email": "tom@example.com"},
                {"name": "Ava", "email": "ava@example.com"},
            ],
        )

        assert result.ok
        assert [f.name for f in store.list_founders(COMPANY)] == ["Tom", "Ava"]

    def test_invalid_founder_keeps_existing(self, store, company):
        store.replace_founders(COMPANY, [{"name": "Maya", "email": "maya@example.com"}])

        result = store.replace_founders(COMPANY, [{"name": "Tom", "email": "broken"}])

        assert result.error.field == "founders[0].email"
        assert [f.name for f in store.list_founders(COMPANY)] == ["Maya"]

    def test_replace_with_empty_list(self, store, company):
        store.replace_founders(COMPANY, [{"name": "Maya", "email": "maya@example.com"}])
        store.replace_founders(COMPANY, [])
        assert store.list_founders(COMPANY) == []


# =============================================================================
# Shares and ESOP
# =============================================================================

class TestSharesAndEsop:

    def test_defaults_without_rows(self, store):
        assert store.get_share_configuration(COMPANY).total_shares == 0
        assert store.get_esop_pool(COMPANY).reserved_shares == 0

    def test_upsert_total_shares(self, store):
        store.upsert_share_configuration(COMPANY, 1000)
        store.upsert_share_configuration(COMPANY, "2000")
        assert store.get_share_configuration(COMPANY).total_shares == 2000

    @pytest.mark.parametrize("value", [-1, 10.5, "abc", float("inf"), float("nan"), True])
    def test_total_shares_rejected(self, store, value):
        result = store.upsert_share_configuration(COMPANY, value)
        assert result.error.field == "total_shares"

    def test_reserved_above_total_rejected(self, store):
        store.upsert_share_configuration(COMPANY, 1000)

        result = store.upsert_esop_reserved_shares(COMPANY, 1001)

        assert result.error.field == "reserved_shares"
        assert store.get_esop_pool(COMPANY).reserved_shares == 0

    def test_reserved_equal_to_total_accepted(self, store):
        store.upsert_share_configuration(COMPANY, 1000)
        assert store.upsert_esop_reserved_shares(COMPANY, 1000).value.reserved_shares == 1000

    def test_negative_reserve_rejected(self, store):
        store.upsert_share_configuration(COMPANY, 1000)
        assert not store.upsert_esop_reserved_shares(COMPANY, -5).ok

    def test_total_may_drop_below_reserve(self, store):
        store.upsert_share_configuration(COMPANY, 1000)
        store.upsert_esop_reserved_shares(COMPANY, 500)

        result = store.upsert_share_configuration(COMPANY, 100)

        assert result.ok
        assert store.get_esop_pool(COMPANY).reserved_shares == 500


# =============================================================================
# Fundraising
# =============================================================================

class TestFundraisingRound:

    ROUND = {
        "active": True,
        "round_stage": "Seed",
        "target_value": Decimal("500000"),
        "target_equity_percent": Decimal("15"),
        "validation_requested": True,
    }

    def test_save_requests_validation(self, store, workflow):
        result = store.set_fundraising_round(COMPANY, self.ROUND)

        assert result.ok
        assert result.value.status.value == "Active"
        assert COMPANY in workflow.requests

    def test_clearing_flag_withdraws_validation(self, store, workflow):
        store.set_fundraising_round(COMPANY, self.ROUND)
        store.set_fundraising_round(COMPANY, {**self.ROUND, "validation_requested": False, "active": False})

        assert workflow.requests == {}
        assert store.get_fundraising_round(COMPANY).active is False

    def test_single_round_per_company(self, store, backend):
        store.set_fundraising_round(COMPANY, self.ROUND)
        store.set_fundraising_round(COMPANY, {**self.ROUND, "round_stage": "Series A"})

        assert len(backend.get("fundraising_details", {"startup_id": COMPANY})) == 1
        assert store.get_fundraising_round(COMPANY).round_stage == "Series A"

    def test_workflow_failure_is_a_warning(self, store):
        store.validation_workflow = ExplodingCollaborator()

        result = store.set_fundraising_round(COMPANY, self.ROUND)

        assert result.ok
        assert [w.operation for w in result.warnings] == ["validation_request"]
        assert store.get_fundraising_round(COMPANY) is not None

    def test_invalid_round(self, store):
        result = store.set_fundraising_round(COMPANY, {**self.ROUND, "target_equity_percent": Decimal("0")})
        assert result.error.field == "target_equity_percent"
        assert store.get_fundraising_round(COMPANY) is None

    def test_pitch_deck_upload(self, store, storage):
        deck = UploadedFile(filename="deck.pdf", content=b"deck")

        result = store.set_fundraising_round(COMPANY, self.ROUND, pitch_deck=deck)

        assert "/pitch-decks/" in result.value.pitch_deck_url

    def test_pitch_deck_failure_blocks_save(self, store, storage):
        storage.fail_uploads = True
        with pytest.raises(UploadError):
            store.set_fundraising_round(COMPANY, self.ROUND, pitch_deck=UploadedFile("deck.pdf", b"deck"))
        assert store.get_fundraising_round(COMPANY) is None


# =============================================================================
# Company account / snapshot / attachments
# =============================================================================

def test_recompute_total_funding(store, company, draft):
    store.add_investment_record(COMPANY, draft(amount=Decimal("100000")))
    store.add_investment_record(COMPANY, draft(amount=Decimal("40000"), round_type="Grant"))

    account = store.recompute_total_funding(COMPANY)

    assert account.total_funding == Decimal("140000")
    assert store.get_company_account(COMPANY).total_funding == Decimal("140000")


def test_company_account_default(store):
    account = store.get_company_account(COMPANY)
    assert account.total_funding == Decimal("0")
    assert account.current_valuation is None


def test_snapshot_derives_price_and_esop(store, draft):
    """1000 shares, latest post-money 1,000,000, 500 reserved, 100,000 allocated."""
    store.open_company_account(COMPANY, total_funding=Decimal("0"), current_valuation=Decimal("300000"))
    store.add_investment_record(COMPANY, draft(date=datetime.date(2023, 1, 1), post_money_valuation=Decimal("400000")))
    store.add_investment_record(COMPANY, draft(date=datetime.date(2024, 3, 1)))
    store.upsert_share_configuration(COMPANY, 1000)
    store.upsert_esop_reserved_shares(COMPANY, 500)
    store.replace_founders(COMPANY, [{"name": "Maya", "email": "maya@example.com"}])

    snapshot = store.load_snapshot(COMPANY)

    assert snapshot.current_valuation == Decimal("1000000")
    assert snapshot.price_per_share == Decimal("1000")
    status = snapshot.esop_status()
    assert status.reserved_value == Decimal("500000")
    assert status.allocated_value == Decimal("100000")
    assert status.utilization == Decimal("0.2")
    assert snapshot.equity_distribution().founder_residual == Decimal("80")
    assert snapshot.summary().investment_count == 2


def test_snapshot_falls_back_to_company_valuation(store):
    store.open_company_account(COMPANY, current_valuation=Decimal("300000"))
    assert store.load_snapshot(COMPANY).current_valuation == Decimal("300000")


class TestAttachmentDownloadUrl:

    def test_external_url_passthrough(self, store):
        url = "https://drive.example.com/file/abc"
        assert store.attachment_download_url(url).value == url

    def test_storage_reference_resolved(self, store, company, draft):
        record = store.add_investment_record(COMPANY, draft(), proof_document=PROOF).value

        result = store.attachment_download_url(record.proof_url)

        assert result.value == record.proof_url

    def test_signed_path_resolved(self, store):
        result = store.attachment_download_url("/storage/v1/object/sign/cap-table-documents/1/x.pdf")
        assert result.value == "https://storage.local/storage/v1/object/public/cap-table-documents/1/x.pdf"

    def test_invalid_reference(self, store):
        assert store.attachment_download_url("no-such-file").error.field == "reference"


def test_in_memory_store_uses_settings(settings, draft, today):
    local = LedgerStore.in_memory(settings=settings, today=lambda: today)
    local.open_company_account(COMPANY)

    record = local.add_investment_record(COMPANY, draft(), proof_document=PROOF).value

    assert f"/{settings.DOCUMENT_BUCKET}/1/investment-proofs/" in record.proof_url
    assert local.changes is not None
    assert local.compensations.max_attempts == settings.COMPENSATION_MAX_ATTEMPTS
