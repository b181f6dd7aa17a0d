from typing import Generic, TypeVar, Type, Optional, List, Any, Dict
from sqlalchemy.orm import Session
from sqlalchemy import select
from pydantic import BaseModel
from app.database import Base
from app.core.tenant_context import TenantContext, scope

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

# Never written from client input, whatever the schema lets through
PROTECTED_FIELDS = frozenset({"id", "tenant_id", "is_super_admin", "is_active", "suspended_at", "suspended_reason"})


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Generic CRUD class with tenant isolation via an explicit TenantContext.

    Every read goes through ``scope()`` and every create stamps the
    context's tenant_id, so a query built here can never return or write
    rows of another tenant.

    Type Parameters:
        ModelType: SQLAlchemy model class
        CreateSchemaType: Pydantic schema for creating records
        UpdateSchemaType: Pydantic schema for updating records
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize CRUD object with model class.

        Args:
            model: SQLAlchemy model class with a tenant_id column
        """
        self.model = model

    def get(self, db: Session, id: int, ctx: TenantContext) -> Optional[ModelType]:
        """
        Retrieve a single record by ID with tenant filtering.

        Args:
            db: Database session
            id: Record ID
            ctx: Tenant context for isolation

        Returns:
            Model instance or None if not found or doesn't belong to tenant
        """
        stmt = scope(select(self.model).where(self.model.id == id), self.model, ctx)
        result = db.execute(stmt)
        return result.scalar_one_or_none()

    def get_multi(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        ctx: TenantContext
    ) -> List[ModelType]:
        """
        Retrieve multiple records with pagination and tenant filtering.

        Args:
            db: Database session
            skip: Number of records to skip
            limit: Maximum number of records to return
            ctx: Tenant context for isolation

        Returns:
            List of model instances belonging to tenant
        """
        stmt = scope(select(self.model), self.model, ctx).order_by(self.model.id).offset(skip).limit(limit)
        result = db.execute(stmt)
        return list(result.scalars().all())

    def create(
        self,
        db: Session,
        *,
        obj_in: CreateSchemaType | Dict[str, Any],
        ctx: TenantContext,
        commit: bool = True
    ) -> ModelType:
        """
        Create a new record owned by the context's tenant.

        Args:
            db: Database session
            obj_in: Pydantic schema or dict with creation data
            ctx: Tenant context for isolation
            commit: Whether to commit immediately

        Returns:
            Created model instance
        """
        if isinstance(obj_in, dict):
            obj_data = dict(obj_in)
        else:
            obj_data = obj_in.model_dump()
        for field in PROTECTED_FIELDS:
            obj_data.pop(field, None)

        db_obj = self.model(tenant_id=ctx.require_tenant_id(), **obj_data)
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        Update an existing record.

        Note: This method assumes the db_obj was already retrieved using
        get() or similar method, which ensures tenant isolation.

        Args:
            db: Database session
            db_obj: Existing model instance to update
            obj_in: Pydantic schema or dict with update data

        Returns:
            Updated model instance
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if field in PROTECTED_FIELDS:
                continue
            setattr(db_obj, field, value)

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def delete(self, db: Session, *, id: int, ctx: TenantContext) -> Optional[ModelType]:
        """
        Delete a record by ID with tenant filtering.

        Args:
            db: Database session
            id: Record ID to delete
            ctx: Tenant context for isolation

        Returns:
            Deleted model instance or None if not found
        """
        obj = self.get(db=db, id=id, ctx=ctx)
        if obj:
            db.delete(obj)
            db.commit()
        return obj
