"""
Contact Service - contacts, accounts and activities
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from datetime import datetime
from typing import Optional, List, Tuple

from traincrm.core.exceptions import ResourceNotFoundError
from traincrm.models.crm import Account, Contact, Activity, ActivityType, Lead
from traincrm.models.user import User
from traincrm.schemas.crm import (
    AccountCreate,
    AccountUpdate,
    ContactCreate,
    ContactUpdate,
    ActivityCreate,
    ActivityUpdate,
)


class ContactService:
    """CRUD for contacts, accounts and activities"""

    # ==================== ACCOUNTS ====================

    async def create_account(self, db: AsyncSession, data: AccountCreate, user: User) -> Account:
        account = Account(
            **data.model_dump(exclude={"assigned_to"}),
            assigned_to=data.assigned_to or str(user.id),
            created_by=str(user.id),
        )
        db.add(account)
        await db.commit()
        await db.refresh(account)
        return account

    async def get_account(self, db: AsyncSession, account_id: str) -> Account:
        account = await db.get(Account, account_id)
        if not account:
            raise ResourceNotFoundError("Account", account_id)
        return account

    async def list_accounts(
        self, db: AsyncSession, search: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[Account], int]:
        conditions = []
        if search:
            term = f"%{search}%"
            conditions.append(or_(Account.account_name.ilike(term), Account.industry.ilike(term)))
        total = (await db.execute(select(func.count(Account.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(Account).where(*conditions).order_by(Account.account_name)
            .offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_account(self, db: AsyncSession, account_id: str, data: AccountUpdate) -> Account:
        account = await self.get_account(db, account_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(account, field, value)
        await db.commit()
        await db.refresh(account)
        return account

    async def delete_account(self, db: AsyncSession, account_id: str) -> None:
        account = await self.get_account(db, account_id)
        await db.delete(account)
        await db.commit()

    # ==================== CONTACTS ====================

    async def create_contact(self, db: AsyncSession, data: ContactCreate, user: User) -> Contact:
        if data.account_id:
            await self.get_account(db, data.account_id)
        contact = Contact(
            **data.model_dump(exclude={"assigned_to"}),
            assigned_to=data.assigned_to or str(user.id),
            created_by=str(user.id),
        )
        db.add(contact)
        await db.commit()
        await db.refresh(contact)
        return contact

    async def get_contact(self, db: AsyncSession, contact_id: str) -> Contact:
        contact = await db.get(Contact, contact_id)
        if not contact:
            raise ResourceNotFoundError("Contact", contact_id)
        return contact

    async def list_contacts(
        self,
        db: AsyncSession,
        account_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Contact], int]:
        conditions = []
        if account_id:
            conditions.append(Contact.account_id == account_id)
        if search:
            term = f"%{search}%"
            conditions.append(or_(
                Contact.first_name.ilike(term),
                Contact.last_name.ilike(term),
                Contact.email.ilike(term),
            ))
        total = (await db.execute(select(func.count(Contact.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(Contact).where(*conditions).order_by(Contact.last_name, Contact.first_name)
            .offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_contact(self, db: AsyncSession, contact_id: str, data: ContactUpdate) -> Contact:
        contact = await self.get_contact(db, contact_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(contact, field, value)
        await db.commit()
        await db.refresh(contact)
        return contact

    async def delete_contact(self, db: AsyncSession, contact_id: str) -> None:
        contact = await self.get_contact(db, contact_id)
        await db.delete(contact)
        await db.commit()

    # ==================== ACTIVITIES ====================

    async def create_activity(self, db: AsyncSession, data: ActivityCreate, user: User) -> Activity:
        activity = Activity(
            **data.model_dump(exclude={"assigned_to", "activity_date"}),
            activity_date=data.activity_date or datetime.utcnow(),
            assigned_to=data.assigned_to or str(user.id),
            created_by=str(user.id),
        )
        db.add(activity)

        if data.lead_id and data.activity_type in (ActivityType.CALL, ActivityType.EMAIL, ActivityType.MEETING):
            lead = await db.get(Lead, data.lead_id)
            if lead:
                lead.last_contact_date = activity.activity_date

        await db.commit()
        await db.refresh(activity)
        return activity

    async def get_activity(self, db: AsyncSession, activity_id: str) -> Activity:
        activity = await db.get(Activity, activity_id)
        if not activity:
            raise ResourceNotFoundError("Activity", activity_id)
        return activity

    async def list_activities(
        self,
        db: AsyncSession,
        lead_id: Optional[str] = None,
        opportunity_id: Optional[str] = None,
        contact_id: Optional[str] = None,
        account_id: Optional[str] = None,
        activity_type: Optional[ActivityType] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[Activity], int]:
        conditions = []
        if lead_id:
            conditions.append(Activity.lead_id == lead_id)
        if opportunity_id:
            conditions.append(Activity.opportunity_id == opportunity_id)
        if contact_id:
            conditions.append(Activity.contact_id == contact_id)
        if account_id:
            conditions.append(Activity.account_id == account_id)
        if activity_type:
            conditions.append(Activity.activity_type == activity_type)

        total = (await db.execute(select(func.count(Activity.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(Activity).where(*conditions).order_by(Activity.activity_date.desc())
            .offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update_activity(self, db: AsyncSession, activity_id: str, data: ActivityUpdate) -> Activity:
        activity = await self.get_activity(db, activity_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(activity, field, value)
        await db.commit()
        await db.refresh(activity)
        return activity

    async def delete_activity(self, db: AsyncSession, activity_id: str) -> None:
        activity = await self.get_activity(db, activity_id)
        await db.delete(activity)
        await db.commit()

    async def get_upcoming_tasks(
        self, db: AsyncSession, user: User, now: Optional[datetime] = None, limit: int = 20
    ) -> List[Activity]:
        """Incomplete tasks assigned to ``user`` due from now on, soonest first"""
        now = now or datetime.utcnow()
        result = await db.execute(
            select(Activity)
            .where(
                and_(
                    Activity.activity_type == ActivityType.TASK,
                    Activity.completed == False,  # noqa: E712
                    Activity.due_date.is_not(None),
                    Activity.due_date >= now,
                    Activity.assigned_to == str(user.id),
                )
            )
            .order_by(Activity.due_date)
            .limit(limit)
        )
        return list(result.scalars().all())


contact_service = ContactService()
