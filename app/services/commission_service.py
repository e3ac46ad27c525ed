import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.config import settings
from app.core.database import run_in_transaction
from app.core.exceptions import CalculationTimeoutError, NotFoundError, ValidationError
from app.models.commission_payout import CommissionPayout, PayoutSource, PayoutStatus
from app.models.commission_rule import CommissionRule
from app.models.order import Order, OrderItem, OrderStatus
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.commission_engine import aggregate_commissions, build_payout_amounts, parse_period
from app.services.commission_rules import interpret_rules, parse_rule_config

logger = logging.getLogger(__name__)


class CommissionService:
    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    @staticmethod
    def select_delivered_orders(db: Session, start: datetime, end: datetime) -> List[Order]:
        """Delivered orders created in ``[start, end)``, with items, products and owner loaded"""
        return db.query(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            joinedload(Order.user)
        ).filter(
            Order.status == OrderStatus.DELIVERED,
            Order.created_at >= start,
            Order.created_at < end
        ).all()

    @staticmethod
    def get_active_rules(db: Session) -> List[CommissionRule]:
        return db.query(CommissionRule).filter(
            CommissionRule.active == True
        ).order_by(CommissionRule.created_at.asc(), CommissionRule.id.asc()).all()

    @staticmethod
    def calculate_commissions(
        db: Session,
        period: str,
        triggered_by: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> List[CommissionPayout]:
        """
        Calculate commission payouts for a ``YYYY-MM`` period.

        The period is validated before any database access. Reads and payout
        writes share one transaction; transient failures replay it.
        Recalculating a period updates the PENDING payouts it created before
        instead of adding a second set.
        """
        start, end = parse_period(period)

        if timeout_seconds is None:
            timeout_seconds = settings.COMMISSION_CALCULATION_TIMEOUT_SECONDS
        deadline = time.monotonic() + timeout_seconds

        logger.info("Calculating commissions for %s", period)

        payouts = run_in_transaction(
            db,
            lambda session: CommissionService._calculate_period(
                session, period, start, end, deadline, triggered_by
            ),
            retries=settings.COMMISSION_TRANSACTION_RETRIES,
            backoff_seconds=settings.COMMISSION_RETRY_BACKOFF_SECONDS
        )

        logger.info("Calculated %s commission payouts for %s", len(payouts), period)
        return payouts

    @staticmethod
    def _calculate_period(
        db: Session,
        period: str,
        start: datetime,
        end: datetime,
        deadline: float,
        triggered_by: Optional[str]
    ) -> List[CommissionPayout]:
        orders = CommissionService.select_delivered_orders(db, start, end)
        rules = interpret_rules(CommissionService.get_active_rules(db))

        breakdown = aggregate_commissions(
            orders,
            rules,
            default_rate=settings.COMMISSION_DEFAULT_RATE,
            parent_share=settings.COMMISSION_PARENT_SHARE
        )
        amounts = build_payout_amounts(breakdown.totals)

        if time.monotonic() > deadline:
            logger.warning("Commission calculation for %s exceeded its deadline, rolling back", period)
            raise CalculationTimeoutError(details={"period": period})

        existing: Dict[str, List[CommissionPayout]] = {}
        for payout in db.query(CommissionPayout).filter(
            CommissionPayout.period == period,
            CommissionPayout.source == PayoutSource.CALCULATED
        ).order_by(CommissionPayout.created_at.asc()).all():
            existing.setdefault(payout.user_id, []).append(payout)

        now = datetime.now(timezone.utc).isoformat()

        payouts = []
        removed = 0
        for user_id, amount in amounts.items():
            metadata = {
                "calculated_at": now,
                "order_count": breakdown.order_counts.get(user_id, 0),
                "rate_source": breakdown.rate_source(user_id)
            }
            previous = existing.pop(user_id, [])
            pending = [p for p in previous if p.status == PayoutStatus.PENDING]

            if pending:
                payout = pending[0]
                payout.amount = amount
                payout.payout_metadata = {**metadata, "recalculated_at": now}
                for duplicate in pending[1:]:
                    db.delete(duplicate)
                    removed += 1
            elif previous:
                # Already approved or paid, leave it to the payout workflow
                logger.warning(
                    "Skipping recalculation for user %s in %s: payout already %s",
                    user_id, period, previous[0].status.value
                )
                continue
            else:
                payout = CommissionPayout(
                    user_id=user_id,
                    amount=amount,
                    period=period,
                    status=PayoutStatus.PENDING,
                    source=PayoutSource.CALCULATED,
                    payout_metadata=metadata
                )
                db.add(payout)

            payouts.append(payout)

        # Users that no longer earn anything this period
        for stale in existing.values():
            for payout in stale:
                if payout.status == PayoutStatus.PENDING:
                    db.delete(payout)
                    removed += 1

        if payouts or removed:
            db.flush()
            AuditService.log_action(
                db=db,
                action="commissions_calculated",
                entity_type="commission_payout",
                user_id=triggered_by,
                changes={
                    "period": period,
                    "orders": len(orders),
                    "payouts": len(payouts),
                    "removed": removed,
                    "total_amount": str(sum(amounts.values(), Decimal("0")))
                },
                commit=False
            )

        return payouts

    # ------------------------------------------------------------------
    # Payouts
    # ------------------------------------------------------------------

    @staticmethod
    def get_payouts(
        db: Session,
        user_id: Optional[str] = None,
        period: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[CommissionPayout]:
        query = db.query(CommissionPayout).options(joinedload(CommissionPayout.user))

        if user_id:
            query = query.filter(CommissionPayout.user_id == user_id)
        if period:
            query = query.filter(CommissionPayout.period == period)
        if status:
            query = query.filter(CommissionPayout.status == status)

        return query.order_by(
            CommissionPayout.created_at.desc()
        ).offset(offset).limit(limit).all()

    @staticmethod
    def create_payout(
        db: Session,
        user_id: str,
        amount: Decimal,
        period: str,
        created_by: str,
        status: PayoutStatus = PayoutStatus.PENDING,
        metadata: Optional[Dict[str, Any]] = None
    ) -> CommissionPayout:
        """Create a one-off payout outside the calculation (admin tool)"""
        parse_period(period)

        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")

        payout = CommissionPayout(
            user_id=user_id,
            amount=amount,
            period=period,
            status=status,
            source=PayoutSource.MANUAL,
            payout_metadata=metadata or {"manually_created": True, "created_by": created_by}
        )
        db.add(payout)
        db.flush()

        AuditService.log_action(
            db=db,
            action="payout_created",
            entity_type="commission_payout",
            entity_id=payout.id,
            user_id=created_by,
            changes={"user_id": user_id, "amount": str(amount), "period": period},
            commit=False
        )

        db.commit()
        db.refresh(payout)
        return payout

    @staticmethod
    def get_payout_summary(db: Session, user_id: str) -> Dict[str, Any]:
        """Payout totals by status plus the latest payouts for one user"""

        def total_for(status: PayoutStatus) -> Decimal:
            return db.query(func.sum(CommissionPayout.amount)).filter(
                CommissionPayout.user_id == user_id,
                CommissionPayout.status == status
            ).scalar() or Decimal("0")

        recent = db.query(CommissionPayout).filter(
            CommissionPayout.user_id == user_id
        ).order_by(CommissionPayout.created_at.desc()).limit(5).all()

        return {
            "pending": total_for(PayoutStatus.PENDING),
            "approved": total_for(PayoutStatus.APPROVED),
            "paid": total_for(PayoutStatus.PAID),
            "recent_payouts": recent
        }

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @staticmethod
    def get_all_rules(
        db: Session,
        active: Optional[bool] = None,
        created_by: Optional[str] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[CommissionRule]:
        query = db.query(CommissionRule).options(joinedload(CommissionRule.creator))

        if active is not None:
            query = query.filter(CommissionRule.active == active)
        if created_by:
            query = query.filter(CommissionRule.created_by == created_by)

        return query.order_by(
            CommissionRule.created_at.desc()
        ).offset(offset).limit(limit).all()

    @staticmethod
    def get_rule_by_id(db: Session, rule_id: str) -> CommissionRule:
        rule = db.query(CommissionRule).options(
            joinedload(CommissionRule.creator)
        ).filter(CommissionRule.id == rule_id).first()

        if not rule:
            raise NotFoundError("Commission rule not found")
        return rule

    @staticmethod
    def _normalize_rule(rule: Any) -> Dict[str, Any]:
        return parse_rule_config(rule).model_dump(mode="json", exclude_none=True)

    @staticmethod
    def create_rule(
        db: Session,
        name: str,
        rule: Any,
        created_by: str,
        active: bool = True
    ) -> CommissionRule:
        commission_rule = CommissionRule(
            name=name,
            rule=CommissionService._normalize_rule(rule),
            active=active,
            created_by=created_by
        )
        db.add(commission_rule)
        db.flush()

        AuditService.log_action(
            db=db,
            action="rule_created",
            entity_type="commission_rule",
            entity_id=commission_rule.id,
            user_id=created_by,
            changes={"name": name, "rule": commission_rule.rule, "active": active},
            commit=False
        )

        db.commit()
        db.refresh(commission_rule)
        return commission_rule

    @staticmethod
    def update_rule(
        db: Session,
        rule_id: str,
        updated_by: str,
        name: Optional[str] = None,
        rule: Any = None,
        active: Optional[bool] = None
    ) -> CommissionRule:
        commission_rule = CommissionService.get_rule_by_id(db, rule_id)

        changes = {}
        if name is not None:
            commission_rule.name = name
            changes["name"] = name
        if rule is not None:
            commission_rule.rule = CommissionService._normalize_rule(rule)
            changes["rule"] = commission_rule.rule
        if active is not None:
            commission_rule.active = active
            changes["active"] = active

        AuditService.log_action(
            db=db,
            action="rule_updated",
            entity_type="commission_rule",
            entity_id=rule_id,
            user_id=updated_by,
            changes=changes,
            commit=False
        )

        db.commit()
        db.refresh(commission_rule)
        return commission_rule

    @staticmethod
    def delete_rule(db: Session, rule_id: str, deleted_by: str) -> None:
        commission_rule = CommissionService.get_rule_by_id(db, rule_id)
        db.delete(commission_rule)

        AuditService.log_action(
            db=db,
            action="rule_deleted",
            entity_type="commission_rule",
            entity_id=rule_id,
            user_id=deleted_by,
            changes={"name": commission_rule.name},
            commit=False
        )

        db.commit()
