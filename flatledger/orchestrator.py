"""
Main Orchestrator for Flatledger

This module ties together all the components and defines the
end-to-end flows for:
1. Bank Sync (fetch → upsert → match new transactions)
2. Matching maintenance (rematch, clear, manual overrides)
3. Reconciliation (balances, current week, autopayment plans)
4. Expenses (categorisation, manual categories, spending reports)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine components stay pure; only the flows touch storage
- Manual matches are never overwritten by automatic passes
- Every step is audited

This is the "glue" between the pure engine and its collaborators.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from flatledger.audit import AuditLogger, create_correlation_id
from flatledger.autopay import AutopaymentPlanner
from flatledger.balances import BalanceCalculator, summarize_household
from flatledger.config import get_settings
from flatledger.dates import today_in
from flatledger.expenses import (
    ExpenseCategorizer,
    category_burn_rates,
    default_categories,
    group_by_category,
    manual_expense_match,
    period_bounds,
    summarize_categories,
    weekly_spending,
)
from flatledger.expenses import default_rules as default_expense_rules
from flatledger.matching import TransactionMatcher, clear_manual_match, set_manual_match
from flatledger.models.expense import (
    BurnRate,
    CategorySummary,
    ExpenseMatch,
    ExpenseRematchResult,
    SummaryPeriod,
)
from flatledger.models.ledger import (
    AutopaymentStep,
    CurrentWeekStatus,
    Flatmate,
    FlatmateBalance,
    HouseholdSummary,
    PlanMode,
    RematchResult,
    SyncResult,
    Transaction,
)
from flatledger.schedule import PaymentSchedule, ScheduleOverlapError
from flatledger.services.bank import TransactionSourceError, TransactionSourceInterface
from flatledger.services.storage import (
    ExpenseStorageInterface,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class SyncFlow:
    """
    Orchestrates a bank sync.

    Flow:
    1. Fetch → Pull transactions from the aggregator (retried)
    2. Upsert → Insert new rows, refresh bank fields of known rows
    3. Match → Run the matcher on new rows only

    Known rows keep whatever match they already have. Use
    MatchingFlow.rematch_all after changing matching rules.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        matcher: Optional[TransactionMatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._matcher = matcher or TransactionMatcher()
        self._audit_logger = audit_logger
        self._settings = get_settings()

    @retry(
        retry=retry_if_exception_type(TransactionSourceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch(
        self,
        source: TransactionSourceInterface,
        since: Optional[date],
    ) -> list[Transaction]:
        return await source.fetch_transactions(since=since)

    async def _sync_window_start(self, full: bool) -> Optional[date]:
        """First sync fetches everything; later ones re-fetch a lookback window."""
        if full:
            return None
        existing = await self._storage.list_transactions()
        if not existing:
            return None
        today = today_in(self._settings.ledger.timezone)
        return today - timedelta(days=self._settings.sync.lookback_days)

    async def sync(
        self,
        source: TransactionSourceInterface,
        full: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> SyncResult:
        """
        Run one sync against `source`.

        Failures on single transactions are collected in
        SyncResult.errors. A fetch that still fails after retries is
        audited and re-raised.
        """
        correlation_id = correlation_id or create_correlation_id()
        since = await self._sync_window_start(full)

        if self._audit_logger:
            await self._audit_logger.log_sync_started(
                since=since.isoformat() if since else None,
                correlation_id=correlation_id,
            )

        try:
            fetched = await self._fetch(source, since)
        except TransactionSourceError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service=e.source,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                await self._audit_logger.log_sync_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        flatmates = await self._storage.list_flatmates(active_only=True)
        result = SyncResult(fetched=len(fetched))

        for incoming in fetched:
            try:
                existing = await self._storage.get_by_external_id(incoming.external_id)
                if existing is not None:
                    await self._storage.update_bank_fields(incoming)
                    result.updated += 1
                    if existing.manual_match:
                        result.skipped_manual += 1
                    continue

                inserted = await self._storage.insert_transaction(incoming)
                result.inserted += 1

                if inserted.manual_match:
                    result.skipped_manual += 1
                    continue

                matched = self._matcher.apply(inserted, flatmates)
                if matched.is_matched:
                    await self._storage.save_match(matched)
                    result.matched += 1

                if self._audit_logger:
                    await self._audit_logger.log_match(
                        transaction_id=matched.id,
                        flatmate_id=matched.matched_user_id,
                        match_type=matched.match_type.value,
                        confidence=matched.match_confidence or 0.0,
                        correlation_id=correlation_id,
                    )
            except StorageError as e:
                result.errors.append(
                    f"Failed to process transaction {incoming.external_id}: {e}"
                )
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type=type(e).__name__,
                        error_message=str(e),
                        details={"external_id": incoming.external_id},
                        correlation_id=correlation_id,
                    )

        if self._audit_logger:
            await self._audit_logger.log_sync_completed(
                fetched=result.fetched,
                inserted=result.inserted,
                updated=result.updated,
                matched=result.matched,
                errors=result.errors,
                correlation_id=correlation_id,
            )

        return result


class MatchingFlow:
    """
    Orchestrates matching maintenance over stored transactions.

    CRITICAL: Only assign_manually and release_manual may touch a
    manually matched transaction. Every automatic pass skips them.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        matcher: Optional[TransactionMatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._matcher = matcher or TransactionMatcher()
        self._audit_logger = audit_logger

    async def rematch_all(
        self,
        include_matched: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> RematchResult:
        """
        Re-run the matcher over stored transactions.

        Args:
            include_matched: Also re-evaluate transactions that already
                have an automatic match (e.g. after rules changed).
                By default only unmatched transactions are considered.
        """
        correlation_id = correlation_id or create_correlation_id()
        flatmates = await self._storage.list_flatmates(active_only=True)
        candidates = await self._storage.list_transactions(
            unmatched_only=not include_matched,
        )

        result = RematchResult()
        for transaction in candidates:
            if transaction.manual_match:
                result.skipped_manual += 1
                continue

            result.total += 1
            updated = self._matcher.apply(transaction, flatmates)
            if updated.current_match() != transaction.current_match():
                await self._storage.save_match(updated)
            if updated.is_matched:
                result.matched += 1

        if self._audit_logger:
            await self._audit_logger.log_rematch(
                matched=result.matched,
                total=result.total,
                skipped_manual=result.skipped_manual,
                correlation_id=correlation_id,
            )

        return result

    async def clear_all_matches(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Drop every automatic match. Manual matches are kept."""
        cleared = 0
        for transaction in await self._storage.list_transactions():
            if transaction.manual_match or not transaction.is_matched:
                continue
            await self._storage.save_match(clear_manual_match(transaction))
            cleared += 1

        if self._audit_logger:
            await self._audit_logger.log_matches_cleared(
                cleared=cleared,
                correlation_id=correlation_id,
            )

        return cleared

    async def _get_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def assign_manually(
        self,
        transaction_id: str,
        flatmate_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Pin a transaction to a flatmate.

        Raises:
            NotFoundError: If the transaction or flatmate doesn't exist
        """
        transaction = await self._get_transaction(transaction_id)
        if await self._storage.get_flatmate(flatmate_id) is None:
            raise NotFoundError(f"Flatmate {flatmate_id} not found")

        saved = await self._storage.save_match(
            set_manual_match(transaction, flatmate_id),
            allow_manual_override=True,
        )

        if self._audit_logger:
            await self._audit_logger.log_manual_match(
                transaction_id=transaction_id,
                flatmate_id=flatmate_id,
                previous_flatmate_id=transaction.matched_user_id,
                correlation_id=correlation_id,
            )

        return saved

    async def release_manual(
        self,
        transaction_id: str,
        rematch: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Hand a manually matched transaction back to automatic matching.

        Args:
            rematch: Run the matcher on it straight away
        """
        transaction = await self._get_transaction(transaction_id)
        saved = await self._storage.save_match(
            clear_manual_match(transaction),
            allow_manual_override=True,
        )

        if self._audit_logger:
            await self._audit_logger.log_manual_released(
                transaction_id=transaction_id,
                previous_flatmate_id=transaction.matched_user_id,
                correlation_id=correlation_id,
            )

        if rematch:
            flatmates = await self._storage.list_flatmates(active_only=True)
            matched = self._matcher.apply(saved, flatmates)
            if matched.is_matched:
                saved = await self._storage.save_match(matched)

        return saved


class BalanceFlow:
    """
    Orchestrates reconciliation reads.

    Nothing computed here is stored. Every call rebuilds the balance
    from the current transactions and schedules.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        calculator: Optional[BalanceCalculator] = None,
        planner: Optional[AutopaymentPlanner] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._calculator = calculator or BalanceCalculator()
        self._planner = planner or AutopaymentPlanner()
        self._audit_logger = audit_logger
        self._settings = get_settings().ledger

    async def _analysis_start_date(self) -> Optional[date]:
        stored = await self._storage.get_analysis_start_date()
        return stored or self._settings.analysis_start_date

    async def _get_flatmate(self, flatmate_id: str) -> Flatmate:
        flatmate = await self._storage.get_flatmate(flatmate_id)
        if flatmate is None:
            raise NotFoundError(f"Flatmate {flatmate_id} not found")
        return flatmate

    async def _load_schedule(
        self,
        flatmate: Flatmate,
        correlation_id: Optional[UUID] = None,
    ) -> PaymentSchedule:
        segments = await self._storage.list_segments(flatmate.id)
        try:
            return PaymentSchedule(segments)
        except ScheduleOverlapError as e:
            if self._audit_logger:
                await self._audit_logger.log_schedule_rejected(
                    flatmate_id=flatmate.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _balance_for(
        self,
        flatmate: Flatmate,
        as_of: Optional[date],
        analysis_start_date: Optional[date],
        correlation_id: Optional[UUID],
    ) -> FlatmateBalance:
        schedule = await self._load_schedule(flatmate, correlation_id)
        transactions = await self._storage.list_transactions(matched_user_id=flatmate.id)

        balance = self._calculator.calculate(
            flatmate,
            transactions,
            schedule,
            analysis_start_date=analysis_start_date,
            as_of=as_of,
        )

        if self._audit_logger:
            await self._audit_logger.log_balance_calculated(
                flatmate_id=flatmate.id,
                weeks=len(balance.weeks),
                total_balance=str(balance.total_balance),
                correlation_id=correlation_id,
            )

        return balance

    async def flatmate_balance(
        self,
        flatmate_id: str,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlatmateBalance:
        """
        Reconcile one flatmate.

        Raises:
            NotFoundError: If the flatmate doesn't exist
            ScheduleOverlapError: If their stored schedule is malformed
        """
        flatmate = await self._get_flatmate(flatmate_id)
        return await self._balance_for(
            flatmate,
            as_of,
            await self._analysis_start_date(),
            correlation_id,
        )

    async def household_summary(
        self,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> HouseholdSummary:
        """Balances of every flatmate, deactivated ones included."""
        correlation_id = correlation_id or create_correlation_id()
        analysis_start_date = await self._analysis_start_date()
        balances = [
            await self._balance_for(f, as_of, analysis_start_date, correlation_id)
            for f in await self._storage.list_flatmates(active_only=False)
        ]
        return summarize_household(balances)

    async def current_week(
        self,
        today: Optional[date] = None,
    ) -> list[CurrentWeekStatus]:
        """This week's payment status of every active flatmate."""
        statuses = []
        for flatmate in await self._storage.list_flatmates(active_only=True):
            schedule = await self._load_schedule(flatmate)
            transactions = await self._storage.list_transactions(matched_user_id=flatmate.id)
            statuses.append(
                self._calculator.current_week_status(flatmate, transactions, schedule, today)
            )
        return statuses

    async def autopayment_plan(
        self,
        flatmate_id: str,
        mode: PlanMode = PlanMode.SPREAD_CATCHUP,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[AutopaymentStep]:
        """Standing-order steps that bring the flatmate back to zero."""
        balance = await self.flatmate_balance(flatmate_id, as_of=today, correlation_id=correlation_id)

        steps = self._planner.plan(
            balance.current_weekly_rate,
            balance.total_balance,
            balance.upcoming_segments,
            mode=mode,
            today=balance.as_of,
        )

        if self._audit_logger:
            await self._audit_logger.log_autopayment_planned(
                flatmate_id=flatmate_id,
                mode=mode.value,
                steps=len(steps),
                correlation_id=correlation_id,
            )

        return steps


class ExpenseFlow:
    """
    Orchestrates expense categorisation and spending reports.

    Flow:
    1. Categorise → Run the expense rules over outgoing transactions
    2. Override → Pin or remove a transaction's category by hand
    3. Report → Per-category summaries, burn rates and weekly spend

    CRITICAL: Only assign_category may touch a manually assigned
    category. Every automatic pass skips it.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        expense_storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._expenses = expense_storage
        self._audit_logger = audit_logger
        self._settings = get_settings().ledger

    async def _categorizer(self) -> ExpenseCategorizer:
        return ExpenseCategorizer(await self._expenses.list_rules(active_only=True))

    async def _get_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def _categorize(
        self,
        transaction: Transaction,
        categorizer: ExpenseCategorizer,
    ) -> Optional[ExpenseMatch]:
        existing = await self._expenses.get_expense_match(transaction.id)
        if existing is not None and existing.manual_match:
            return existing

        match = categorizer.match(transaction)
        if match is not None:
            return await self._expenses.save_expense_match(match)

        # Rules changed and no longer cover it
        if existing is not None:
            await self._expenses.delete_expense_match(transaction.id)
        return None

    async def categorize(self, transaction_id: str) -> Optional[ExpenseMatch]:
        """
        Categorise one stored transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        transaction = await self._get_transaction(transaction_id)
        return await self._categorize(transaction, await self._categorizer())

    async def rematch_all(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseRematchResult:
        """Re-run the expense rules over every outgoing transaction."""
        correlation_id = correlation_id or create_correlation_id()
        categorizer = await self._categorizer()

        result = ExpenseRematchResult()
        for transaction in await self._storage.list_transactions():
            if transaction.amount >= 0:
                continue
            existing = await self._expenses.get_expense_match(transaction.id)
            if existing is not None and existing.manual_match:
                result.skipped_manual += 1
                continue

            result.total += 1
            if await self._categorize(transaction, categorizer) is not None:
                result.matched += 1

        if self._audit_logger:
            await self._audit_logger.log_expense_rematch(
                matched=result.matched,
                total=result.total,
                skipped_manual=result.skipped_manual,
                correlation_id=correlation_id,
            )

        return result

    async def assign_category(
        self,
        transaction_id: str,
        category_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> Optional[ExpenseMatch]:
        """
        Pin a transaction to a category, or remove its category (None).

        Raises:
            NotFoundError: If the transaction or category doesn't exist
        """
        await self._get_transaction(transaction_id)
        existing = await self._expenses.get_expense_match(transaction_id)

        if category_id is None:
            await self._expenses.delete_expense_match(
                transaction_id,
                allow_manual_override=True,
            )
            saved = None
        else:
            if await self._expenses.get_category(category_id) is None:
                raise NotFoundError(f"Expense category {category_id} not found")
            saved = await self._expenses.save_expense_match(
                manual_expense_match(transaction_id, category_id),
                allow_manual_override=True,
            )

        if self._audit_logger:
            await self._audit_logger.log_expense_category_set(
                transaction_id=transaction_id,
                category_id=category_id,
                previous_category_id=existing.category_id if existing else None,
                correlation_id=correlation_id,
            )

        return saved

    async def summary(
        self,
        period: SummaryPeriod = SummaryPeriod.ALL,
        today: Optional[date] = None,
    ) -> list[CategorySummary]:
        """Spending per active category over the period containing today."""
        today = today or today_in(self._settings.timezone)
        start, end = period_bounds(period, today)
        return summarize_categories(
            await self._expenses.list_categories(),
            await self._expenses.list_expense_matches(),
            await self._storage.list_transactions(),
            start,
            end,
        )

    async def burn_rates(self) -> list[BurnRate]:
        return category_burn_rates(
            await self._expenses.list_categories(),
            await self._expenses.list_expense_matches(),
            await self._storage.list_transactions(),
        )

    async def weekly_spending(
        self,
        category_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[tuple[date, Decimal]]:
        """
        Spend per Saturday-started week for one category.

        Defaults to the 52 weeks up to today.
        """
        end = end or today_in(self._settings.timezone)
        start = start or end - timedelta(weeks=52)
        filed = group_by_category(
            await self._expenses.list_expense_matches(category_id),
            await self._storage.list_transactions(date_from=start, date_to=end),
        )
        return weekly_spending(filed.get(category_id, []), start, end)

    async def seed_defaults(self) -> bool:
        """
        Load the starter categories and rules into an empty store.

        Returns:
            False if categories already exist and nothing was added
        """
        if await self._expenses.list_categories():
            return False
        for category in default_categories():
            await self._expenses.save_category(category)
        for rule in default_expense_rules():
            await self._expenses.save_rule(rule)
        return True


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    expense_storage: Optional[ExpenseStorageInterface] = None,
) -> tuple[SyncFlow, MatchingFlow, BalanceFlow, ExpenseFlow, LedgerStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger storage to use. Defaults to a fresh in-memory store.
        expense_storage: Expense storage to use. Defaults to a fresh
            in-memory store.

    Returns:
        (sync_flow, matching_flow, balance_flow, expense_flow, storage)
    """
    storage = storage or InMemoryLedgerStorage()
    expense_storage = expense_storage or InMemoryExpenseStorage()
    audit_logger = AuditLogger(InMemoryAuditStorage())
    matcher = TransactionMatcher()

    sync_flow = SyncFlow(storage, matcher=matcher, audit_logger=audit_logger)
    matching_flow = MatchingFlow(storage, matcher=matcher, audit_logger=audit_logger)
    balance_flow = BalanceFlow(storage, audit_logger=audit_logger)
    expense_flow = ExpenseFlow(storage, expense_storage, audit_logger=audit_logger)

    return sync_flow, matching_flow, balance_flow, expense_flow, storage
