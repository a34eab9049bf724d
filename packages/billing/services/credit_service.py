"""
Credit reconciliation service.

The only writer of a subscription's credit fields and of the credit ledger.
Each public method runs in one transaction: the balance change and its
ledger entry commit together or not at all. Audit log writes happen in a
savepoint and never fail the operation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from common.core.exceptions import ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import (
    InsufficientCreditsError,
    InvalidOperationError,
    SubscriptionNotFoundError,
)
from packages.billing.models.domain.credits import (
    AuditLogEntryCreateModel,
    CreditAdjustment,
    CreditBalance,
    CreditLedgerEntry,
    CreditLedgerEntryCreateModel,
    CreditOperationRequest,
)
from packages.billing.models.domain.enums import AuditAction, CreditOperation
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import Subscription
from packages.billing.plans import PlanCatalog, get_plan_catalog
from packages.billing.repositories.audit_log_repository import AuditLogRepository
from packages.billing.repositories.credit_ledger_repository import (
    CreditLedgerRepository,
)
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)

logger = get_logger(__name__)


class CreditService:
    """Applies credit operations and billing-driven credit changes."""

    def __init__(
        self,
        subscription_repo: Optional[SubscriptionRepository] = None,
        ledger_repo: Optional[CreditLedgerRepository] = None,
        audit_repo: Optional[AuditLogRepository] = None,
        plan_catalog: Optional[PlanCatalog] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.ledger_repo = ledger_repo or CreditLedgerRepository()
        self.audit_repo = audit_repo or AuditLogRepository()
        self.plan_catalog = plan_catalog or get_plan_catalog()

    # ------------------------------------------------------------------
    # User-facing operations
    # ------------------------------------------------------------------

    @trace_span
    async def apply_operation(self, request: CreditOperationRequest) -> CreditBalance:
        """
        Apply a USE, RESET or BONUS operation.

        USE is a conditional update that only succeeds while the balance
        covers the amount, so concurrent spends can't overdraw.

        Raises:
            InvalidOperationError: operation is not USE, RESET or BONUS
            ValidationError: non-positive amount for USE or BONUS
            SubscriptionNotFoundError: no such subscription
            InvalidPlanError: stored plan is not in the catalog
            InsufficientCreditsError: USE amount exceeds the balance
        """
        try:
            operation = CreditOperation(request.operation)
        except ValueError:
            raise InvalidOperationError(f"Invalid operation type: {request.operation}")

        if operation != CreditOperation.RESET and request.amount <= 0:
            raise ValidationError("Invalid credit amount")

        subscription_id = request.subscription_id

        async with transaction():
            if operation == CreditOperation.USE:
                debited = await self.subscription_repo.debit_credits(
                    subscription_id, request.amount
                )
                subscription = await self._get_or_raise(subscription_id)
                plan = self.plan_catalog.get(subscription.plan_id)
                if not debited:
                    logger.info(
                        f"Insufficient credits for subscription {subscription_id}",
                        extra={
                            "subscription_id": subscription_id,
                            "requested": request.amount,
                            "credits_remaining": subscription.credits_remaining,
                        },
                    )
                    raise InsufficientCreditsError(requires_upgrade=plan.is_free)
                ledger_amount = request.amount

            elif operation == CreditOperation.RESET:
                subscription = await self._get_for_update_or_raise(subscription_id)
                plan = self.plan_catalog.get(subscription.plan_id)
                await self.subscription_repo.write_credit_state(
                    subscription_id,
                    credits_remaining=plan.credits.monthly,
                    credits_limit=plan.credits.maximum,
                )
                ledger_amount = plan.credits.monthly

            else:
                subscription = await self._get_for_update_or_raise(subscription_id)
                plan = self.plan_catalog.get(subscription.plan_id)
                await self.subscription_repo.add_credits_capped(
                    subscription_id, request.amount
                )
                ledger_amount = request.amount

            updated = await self._get_or_raise(subscription_id)
            await self._record_ledger(
                subscription_id,
                operation,
                ledger_amount,
                updated.credits_remaining,
                request.description,
            )
            await self._record_audit(
                subscription_id,
                AuditAction.CREDIT_OPERATION,
                {
                    "operation": operation.value,
                    "amount": request.amount,
                    "previous_credits": subscription.credits_remaining,
                    "new_credits": updated.credits_remaining,
                },
            )

        logger.info(
            f"Applied {operation.value} to subscription {subscription_id}",
            extra={
                "subscription_id": subscription_id,
                "operation": operation.value,
                "amount": request.amount,
                "credits_remaining": updated.credits_remaining,
            },
        )

        return CreditBalance(
            credits_remaining=updated.credits_remaining,
            credits_limit=updated.credits_limit,
            plan_id=plan.id.value,
        )

    @trace_span
    async def get_balance(self, user_key: str) -> CreditBalance:
        subscription = await self.subscription_repo.get_by_user_key(user_key)
        if not subscription:
            raise SubscriptionNotFoundError()
        return CreditBalance(
            credits_remaining=subscription.credits_remaining,
            credits_limit=subscription.credits_limit,
            plan_id=subscription.plan_id,
        )

    @trace_span
    async def get_history(
        self, user_key: str, limit: int = 50
    ) -> List[CreditLedgerEntry]:
        subscription = await self.subscription_repo.get_by_user_key(user_key)
        if not subscription:
            raise SubscriptionNotFoundError()
        return await self.ledger_repo.list_for_subscription(subscription.id, limit)

    # ------------------------------------------------------------------
    # Billing-driven changes
    # ------------------------------------------------------------------

    @trace_span
    async def allocate_initial(
        self, subscription_id: int, plan: Plan, details: Optional[Dict[str, Any]] = None
    ) -> CreditAdjustment:
        """Start a paid plan: balance = monthly, limit = maximum, reset count 0."""
        async with transaction():
            subscription = await self._get_for_update_or_raise(subscription_id)
            await self.subscription_repo.write_credit_state(
                subscription_id,
                plan_id=plan.id.value,
                credits_remaining=plan.credits.monthly,
                credits_limit=plan.credits.maximum,
                credits_reset_count=0,
            )
            await self._record_ledger(
                subscription_id,
                CreditOperation.RESET,
                plan.credits.monthly,
                plan.credits.monthly,
                f"Initial allocation for {plan.id.value} plan",
            )
            await self._record_audit(
                subscription_id,
                AuditAction.INITIAL_CREDIT_ALLOCATION,
                {
                    "plan_id": plan.id.value,
                    "credits_allocated": plan.credits.monthly,
                    "credits_limit": plan.credits.maximum,
                    **(details or {}),
                },
            )

        return CreditAdjustment(
            subscription_id=subscription_id,
            previous_remaining=subscription.credits_remaining,
            credits_remaining=plan.credits.monthly,
            credits_limit=plan.credits.maximum,
            plan_id=plan.id.value,
        )

    @trace_span
    async def apply_plan_change(
        self, subscription_id: int, new_plan: Plan
    ) -> CreditAdjustment:
        """
        Move a subscription onto a different plan mid-cycle.

        Rollover plans keep the old balance plus the new monthly allowance,
        capped at the new maximum. When the stored plan already matches,
        nothing changes, which makes redelivered events harmless.
        """
        async with transaction():
            subscription = await self._get_for_update_or_raise(subscription_id)

            if subscription.plan_id == new_plan.id.value:
                logger.info(
                    f"Plan unchanged for subscription {subscription_id}, skipping credit update",
                    extra={
                        "subscription_id": subscription_id,
                        "plan_id": new_plan.id.value,
                    },
                )
                return self._unchanged(subscription)

            new_balance = new_plan.renewal_balance(subscription.credits_remaining)
            await self.subscription_repo.write_credit_state(
                subscription_id,
                plan_id=new_plan.id.value,
                credits_remaining=new_balance,
                credits_limit=new_plan.credits.maximum,
            )
            await self._record_ledger(
                subscription_id,
                self._allocation_operation(new_plan),
                self._allocation_amount(new_plan, new_balance),
                new_balance,
                f"Plan change {subscription.plan_id} -> {new_plan.id.value}",
            )
            await self._record_audit(
                subscription_id,
                AuditAction.PLAN_CHANGE,
                {
                    "previous_plan": subscription.plan_id,
                    "new_plan": new_plan.id.value,
                    "previous_credits": subscription.credits_remaining,
                    "new_credits": new_balance,
                    "new_limit": new_plan.credits.maximum,
                    "rollover_applied": new_plan.credits.rollover,
                },
            )

        return CreditAdjustment(
            subscription_id=subscription_id,
            previous_remaining=subscription.credits_remaining,
            credits_remaining=new_balance,
            credits_limit=new_plan.credits.maximum,
            plan_id=new_plan.id.value,
        )

    @trace_span
    async def apply_renewal(
        self,
        subscription_id: int,
        plan: Plan,
        period_end: Optional[datetime],
        invoice_ref: Optional[str],
    ) -> CreditAdjustment:
        """
        Refresh credits for a paid billing period.

        An invoice that was already applied is a no-op.
        """
        async with transaction():
            subscription = await self._get_for_update_or_raise(subscription_id)

            if invoice_ref and subscription.last_invoice_ref == invoice_ref:
                logger.info(
                    f"Invoice {invoice_ref} already applied to subscription {subscription_id}",
                    extra={"subscription_id": subscription_id, "invoice_id": invoice_ref},
                )
                return self._unchanged(subscription)

            new_balance = plan.renewal_balance(subscription.credits_remaining)
            values = {
                "plan_id": plan.id.value,
                "credits_remaining": new_balance,
                "credits_limit": plan.credits.maximum,
                "credits_reset_count": subscription.credits_reset_count + 1,
                "last_invoice_ref": invoice_ref,
            }
            if period_end is not None:
                values["end_date"] = period_end
            await self.subscription_repo.write_credit_state(subscription_id, **values)

            await self._record_ledger(
                subscription_id,
                self._allocation_operation(plan),
                self._allocation_amount(plan, new_balance),
                new_balance,
                f"Renewal for {plan.id.value} plan"
                + (f" (invoice {invoice_ref})" if invoice_ref else ""),
            )
            await self._record_audit(
                subscription_id,
                AuditAction.MONTHLY_CREDIT_REFRESH,
                {
                    "previous_credits": subscription.credits_remaining,
                    "monthly_allocation": plan.credits.monthly,
                    "new_credits": new_balance,
                    "rollover_applied": plan.credits.rollover,
                    "invoice_id": invoice_ref,
                },
            )

        return CreditAdjustment(
            subscription_id=subscription_id,
            previous_remaining=subscription.credits_remaining,
            credits_remaining=new_balance,
            credits_limit=plan.credits.maximum,
            plan_id=plan.id.value,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, subscription_id: int) -> Subscription:
        subscription = await self.subscription_repo.get(subscription_id)
        if not subscription:
            raise SubscriptionNotFoundError()
        return subscription

    async def _get_for_update_or_raise(self, subscription_id: int) -> Subscription:
        subscription = await self.subscription_repo.get_for_update(subscription_id)
        if not subscription:
            raise SubscriptionNotFoundError()
        return subscription

    @staticmethod
    def _allocation_operation(plan: Plan) -> CreditOperation:
        # Rollover adds on top of the balance; otherwise it is a hard reset
        return CreditOperation.BONUS if plan.credits.rollover else CreditOperation.RESET

    @staticmethod
    def _allocation_amount(plan: Plan, new_balance: int) -> int:
        return plan.credits.monthly if plan.credits.rollover else new_balance

    @staticmethod
    def _unchanged(subscription: Subscription) -> CreditAdjustment:
        return CreditAdjustment(
            subscription_id=subscription.id,
            previous_remaining=subscription.credits_remaining,
            credits_remaining=subscription.credits_remaining,
            credits_limit=subscription.credits_limit,
            plan_id=subscription.plan_id,
            applied=False,
        )

    async def _record_ledger(
        self,
        subscription_id: int,
        operation: CreditOperation,
        amount: int,
        balance_after: int,
        description: Optional[str],
    ) -> None:
        await self.ledger_repo.record(
            CreditLedgerEntryCreateModel(
                subscription_id=subscription_id,
                operation=operation,
                amount=amount,
                balance_after=balance_after,
                description=description,
            )
        )

    async def _record_audit(
        self,
        subscription_id: int,
        action: AuditAction,
        details: Dict[str, Any],
    ) -> bool:
        return await self.audit_repo.record_best_effort(
            AuditLogEntryCreateModel(
                subscription_id=subscription_id, action=action, details=details
            )
        )
