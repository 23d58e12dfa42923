"""
Automation rules - database model and operations for recurring pot deposits.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (JSON, Boolean, CheckConstraint, Column, DateTime,
                        ForeignKey, Integer, String)
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from potflow.automation.schedule import MONTHLY, WEEKLY, as_utc, compute_next_run_at
from potflow.db import Base

logger = logging.getLogger(__name__)


class Automation(Base):
    """Database model for a recurring transfer into a pot."""

    __tablename__ = "automations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_automations_amount_positive"),
        CheckConstraint(
            "(frequency = 'weekly' AND day_of_week IS NOT NULL AND day_of_month IS NULL)"
            " OR (frequency = 'monthly' AND day_of_month IS NOT NULL AND day_of_week IS NULL)",
            name="ck_automations_recurrence",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    source_credit_card_id = Column(String, nullable=True)
    destination_pot_id = Column(String, ForeignKey("pots.id"), nullable=False)
    amount = Column(Integer, nullable=False)  # In pence
    frequency = Column(String, nullable=False)  # "weekly" or "monthly"
    day_of_week = Column(Integer, nullable=True)  # 0 = Sunday
    day_of_month = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    next_run_at = Column(DateTime(timezone=True), nullable=True, index=True)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    last_result = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> Dict[str, Any]:
        next_run_at = as_utc(self.next_run_at)
        last_run_at = as_utc(self.last_run_at)
        return {
            "id": self.id,
            "name": self.name,
            "source_credit_card_id": self.source_credit_card_id,
            "destination_pot_id": self.destination_pot_id,
            "amount": self.amount,
            "frequency": self.frequency,
            "day_of_week": self.day_of_week,
            "day_of_month": self.day_of_month,
            "is_active": self.is_active,
            "next_run_at": next_run_at.isoformat() if next_run_at else None,
            "last_run_at": last_run_at.isoformat() if last_run_at else None,
            "last_result": self.last_result,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Automation id={self.id} frequency={self.frequency} amount={self.amount}>"


class AutomationManager:
    """Manages automations in the database."""

    def __init__(self, db: Session, tz=None):
        self.db = db
        self.tz = tz

    def next_run_for(self, automation: Automation, now: datetime) -> datetime:
        """Next run instant for an automation, normalised to UTC for storage."""
        next_run = compute_next_run_at(
            automation.frequency,
            automation.day_of_week,
            automation.day_of_month,
            now,
            tz=self.tz,
        )
        return next_run.astimezone(timezone.utc)

    def create_automation(
        self, user_id: str, data: Dict[str, Any], now: Optional[datetime] = None
    ) -> Automation:
        """
        Create an automation and give it its first schedule.

        Args:
            user_id: Owner
            data: Validated fields (see AutomationCreateSchema)
            now: Current instant (defaults to now)

        Returns:
            Automation: The created row
        """
        now = now or datetime.now(timezone.utc)
        frequency = data["frequency"]
        automation = Automation(
            user_id=user_id,
            name=data["name"],
            source_credit_card_id=data.get("source_credit_card_id"),
            destination_pot_id=data["destination_pot_id"],
            amount=data["amount"],
            frequency=frequency,
            day_of_week=data.get("day_of_week") if frequency == WEEKLY else None,
            day_of_month=data.get("day_of_month") if frequency == MONTHLY else None,
            is_active=True,
        )
        automation.next_run_at = self.next_run_for(automation, now)

        self.db.add(automation)
        self.db.commit()
        self.db.refresh(automation)
        logger.info(f"Created automation {automation.id} ({frequency}) for user {user_id}")
        return automation

    def get_automation(self, automation_id: str, user_id: Optional[str] = None) -> Optional[Automation]:
        query = self.db.query(Automation).filter_by(id=automation_id)
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.first()

    def get_automations_by_user(self, user_id: str) -> List[Automation]:
        return (
            self.db.query(Automation)
            .filter_by(user_id=user_id)
            .order_by(Automation.created_at.desc())
            .all()
        )

    def set_active(
        self, automation: Automation, is_active: bool, now: Optional[datetime] = None
    ) -> Automation:
        """
        Activate or pause an automation.

        Re-activation reschedules from now so that a paused automation does
        not fire immediately for a run it missed while paused.
        """
        now = now or datetime.now(timezone.utc)
        if is_active and not automation.is_active:
            automation.next_run_at = self.next_run_for(automation, now)
        automation.is_active = is_active
        automation.updated_at = now
        self.db.commit()
        logger.info(f"Set automation {automation.id} is_active={is_active}")
        return automation

    def delete_automation(self, automation: Automation) -> None:
        self.db.delete(automation)
        self.db.commit()
        logger.info(f"Deleted automation {automation.id}")

    def get_due_automations(self, now: datetime) -> List[Automation]:
        """
        Active automations due at `now`, plus active automations that were never scheduled.

        The backfill query guarantees every active automation gets a first
        schedule even if creation-time scheduling was skipped.
        """
        now = as_utc(now)
        due_now = (
            self.db.query(Automation)
            .filter(Automation.is_active.is_(True), Automation.next_run_at <= now)
            .order_by(Automation.next_run_at)
            .all()
        )
        needs_backfill = (
            self.db.query(Automation)
            .filter(Automation.is_active.is_(True), Automation.next_run_at.is_(None))
            .order_by(Automation.created_at)
            .all()
        )

        due: List[Automation] = []
        seen = set()
        for automation in due_now + needs_backfill:
            if automation.id in seen:
                continue
            seen.add(automation.id)
            due.append(automation)
        return due

    def reschedule(self, automation: Automation, now: datetime) -> datetime:
        """Advance next_run_at from `now` and persist it."""
        next_run_at = self.next_run_for(automation, now)
        automation.next_run_at = next_run_at
        automation.updated_at = now
        self.db.commit()
        return next_run_at
