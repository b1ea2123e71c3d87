import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.common.exceptions import InsufficientBalance, LedgerUnavailable
from app.common.generation_costs import GenerationAction, GenerationCostManager
from app.common.http_response_model import PageMeta
from app.config import settings
from app.database import db_session
from app.logger.logger import get_logger
from app.models import CreditBalance, CreditLedgerEntry, LedgerAction


logger = get_logger("ledger")


class CreditLedgerService:
    """
    Authoritative per-account credit balance plus its append-only audit log.

    Every mutation of the main pool runs in one transaction that holds the
    balance row lock (``SELECT ... FOR UPDATE``), applies a guarded UPDATE and
    writes the ledger entry before committing. Any failure rolls the whole
    unit back, so a balance change never exists without its entry.
    """

    def __init__(self, session: AsyncSession = Depends(db_session)) -> None:
        self.session = session

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Amount must be a positive integer",
            )

    async def _select_balance(
        self, user_id: uuid.UUID, for_update: bool = False
    ) -> Optional[CreditBalance]:
        query = (
            select(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_or_create_balance(self, user_id: uuid.UUID) -> CreditBalance:
        """Return the account's balance, creating it with the default grant."""
        try:
            balance = await self._select_balance(user_id)
            if balance:
                return balance

            balance = CreditBalance(
                user_id=user_id,
                total_credits=settings.DEFAULT_CREDIT_GRANT,
                used_credits=0,
                remaining_credits=settings.DEFAULT_CREDIT_GRANT,
                bonus_credits=settings.DEFAULT_BONUS_GRANT,
            )
            self.session.add(balance)
            self.session.add(
                CreditLedgerEntry(
                    user_id=user_id,
                    action=LedgerAction.GRANT,
                    action_type="default_grant",
                    amount=settings.DEFAULT_CREDIT_GRANT,
                    balance_after=settings.DEFAULT_CREDIT_GRANT,
                    description="Default credit grant",
                    ledger_metadata={"bonus_credits": settings.DEFAULT_BONUS_GRANT},
                )
            )
            await self.session.commit()
            logger.info(f"Created credit balance for user {user_id}")
            return balance

        except IntegrityError:
            # another request created the row first
            await self.session.rollback()
            balance = await self._select_balance(user_id)
            if balance is None:
                raise LedgerUnavailable()
            return balance

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to load credit balance for user {user_id}: {e}")
            raise LedgerUnavailable() from e

    async def _locked_balance(self, user_id: uuid.UUID) -> CreditBalance:
        balance = await self._select_balance(user_id, for_update=True)
        if balance is None:
            await self.session.rollback()
            await self.get_or_create_balance(user_id)
            balance = await self._select_balance(user_id, for_update=True)
        return balance

    async def deduct(
        self,
        user_id: uuid.UUID,
        amount: int,
        action_type: str,
        model_used: Optional[str] = None,
        duration: Optional[int] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict] = None,
    ) -> CreditBalance:
        self._validate_amount(amount)

        try:
            balance = await self._locked_balance(user_id)
            if balance.remaining_credits < amount:
                raise InsufficientBalance(
                    remaining=balance.remaining_credits, required=amount
                )

            new_used = balance.used_credits + amount
            new_remaining = max(0, balance.total_credits - new_used)

            result = await self.session.execute(
                update(CreditBalance)
                .where(
                    CreditBalance.id == balance.id,
                    CreditBalance.remaining_credits >= amount,
                )
                .values(
                    used_credits=new_used,
                    remaining_credits=new_remaining,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount != 1:
                raise InsufficientBalance(
                    remaining=balance.remaining_credits, required=amount
                )

            self.session.add(
                CreditLedgerEntry(
                    user_id=user_id,
                    action=LedgerAction.DEDUCT,
                    action_type=action_type,
                    amount=amount,
                    balance_after=new_remaining,
                    model_used=model_used,
                    duration=duration,
                    description=description,
                    ledger_metadata=metadata or {},
                )
            )
            await self.session.commit()

        except InsufficientBalance:
            await self.session.rollback()
            raise

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Credit deduction failed for user {user_id}: {e}")
            raise LedgerUnavailable() from e

        logger.debug(f"Deducted {amount} credits from user {user_id} ({action_type})")
        return balance

    async def add(
        self, user_id: uuid.UUID, amount: int, reason: Optional[str] = None
    ) -> CreditBalance:
        self._validate_amount(amount)

        try:
            balance = await self._locked_balance(user_id)
            new_total = balance.total_credits + amount
            new_remaining = max(0, new_total - balance.used_credits)

            await self.session.execute(
                update(CreditBalance)
                .where(CreditBalance.id == balance.id)
                .values(
                    total_credits=new_total,
                    remaining_credits=new_remaining,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            self.session.add(
                CreditLedgerEntry(
                    user_id=user_id,
                    action=LedgerAction.ADD,
                    action_type="credit_addition",
                    amount=amount,
                    balance_after=new_remaining,
                    description=reason or "Credit addition",
                )
            )
            await self.session.commit()

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Adding credits failed for user {user_id}: {e}")
            raise LedgerUnavailable() from e

        logger.info(f"Added {amount} credits to user {user_id}")
        return balance

    async def refund(
        self, user_id: uuid.UUID, amount: int, reason: Optional[str] = None
    ) -> CreditBalance:
        """Give back credits spent on a failed action; never refunds more than used."""
        self._validate_amount(amount)

        try:
            balance = await self._locked_balance(user_id)
            refunded = min(amount, balance.used_credits)
            new_used = balance.used_credits - refunded
            new_remaining = max(0, balance.total_credits - new_used)

            await self.session.execute(
                update(CreditBalance)
                .where(CreditBalance.id == balance.id)
                .values(
                    used_credits=new_used,
                    remaining_credits=new_remaining,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            self.session.add(
                CreditLedgerEntry(
                    user_id=user_id,
                    action=LedgerAction.REFUND,
                    action_type="refund",
                    amount=refunded,
                    balance_after=new_remaining,
                    description=reason or "Credit refund",
                    ledger_metadata={"requested": amount},
                )
            )
            await self.session.commit()

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Credit refund failed for user {user_id}: {e}")
            raise LedgerUnavailable() from e

        return balance

    async def deduct_bonus(
        self,
        user_id: uuid.UUID,
        amount: int,
        action_type: str = "ai_assist",
        description: Optional[str] = None,
    ) -> CreditBalance:
        """Spend from the bonus pool with a single conditional UPDATE."""
        self._validate_amount(amount)
        await self.get_or_create_balance(user_id)

        try:
            result = await self.session.execute(
                update(CreditBalance)
                .where(
                    CreditBalance.user_id == user_id,
                    CreditBalance.bonus_credits >= amount,
                )
                .values(
                    bonus_credits=CreditBalance.bonus_credits - amount,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                balance = await self._select_balance(user_id)
                raise InsufficientBalance(
                    remaining=balance.bonus_credits, required=amount, pool="bonus"
                )

            balance = await self._select_balance(user_id)
            self.session.add(
                CreditLedgerEntry(
                    user_id=user_id,
                    action=LedgerAction.BONUS_DEDUCT,
                    action_type=action_type,
                    amount=amount,
                    balance_after=balance.bonus_credits,
                    description=description,
                )
            )
            await self.session.commit()

        except InsufficientBalance:
            await self.session.rollback()
            raise

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Bonus credit deduction failed for user {user_id}: {e}")
            raise LedgerUnavailable() from e

        return balance

    async def charge_for_generation(
        self,
        user_id: uuid.UUID,
        action: GenerationAction,
        quality: Optional[str] = None,
        clips: int = 1,
        duration: Optional[int] = None,
        credits_per_second: Optional[int] = None,
    ) -> Dict:
        """Price a generation action and deduct it before the paid call runs."""
        try:
            cost = GenerationCostManager.calculate_cost(
                action,
                quality=quality,
                clips=clips,
                duration=duration,
                credits_per_second=credits_per_second,
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        balance = await self.deduct(
            user_id,
            cost,
            action_type=action.value,
            model_used=GenerationCostManager.get_model(action),
            duration=duration,
            description=GenerationCostManager.get_cost_info(action).description,
            metadata={"quality": quality, "clips": clips},
        )
        return {
            "action": action.value,
            "credits_used": cost,
            "remaining_credits": balance.remaining_credits,
        }

    async def get_history(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        page_size: int = 20,
        action_type: Optional[str] = None,
    ) -> Tuple[List[Dict], PageMeta]:
        filters = [CreditLedgerEntry.user_id == user_id]
        if action_type:
            filters.append(CreditLedgerEntry.action_type == action_type)

        count_result = await self.session.execute(
            select(func.count()).select_from(CreditLedgerEntry).where(*filters)
        )
        total_items = count_result.scalar_one()

        query = (
            select(CreditLedgerEntry)
            .where(*filters)
            .order_by(CreditLedgerEntry.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(query)
        entries = result.scalars().all()

        history = [
            {
                "id": str(entry.id),
                "action": entry.action,
                "action_type": entry.action_type,
                "amount": entry.amount,
                "balance_after": entry.balance_after,
                "model_used": entry.model_used,
                "duration": entry.duration,
                "description": entry.description,
                "metadata": entry.ledger_metadata,
                "created_at": entry.created_at,
            }
            for entry in entries
        ]
        meta = PageMeta.from_total(page, page_size, total_items)
        return history, meta
