# app/crud/base.py
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.db.base_class import Base
from app.schemas.realtime import ChangeType
from app.services.change_feed import publish_change, row_to_dict

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    # Tables with a change feed set this so committed writes are published
    publishes_changes: bool = False

    def __init__(self, model: Type[ModelType]):
        """
        CRUD object with default methods to Create, Read, Update.

        **Parameters**

        * `model`: A SQLAlchemy model class
        """
        self.model = model

    @property
    def table(self) -> str:
        return self.model.__tablename__

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return db.query(self.model).filter(self.model.id == id).first()

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: int = 100
    ) -> List[ModelType]:
        return db.query(self.model).offset(skip).limit(limit).all()

    def create(self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]]) -> ModelType:
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        self.publish_insert(db_obj)
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
    ) -> ModelType:
        old_data = row_to_dict(db_obj)
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        self.publish_update(db_obj, old_data)
        return db_obj

    def publish_insert(self, db_obj: ModelType) -> None:
        if self.publishes_changes:
            publish_change(self.table, ChangeType.INSERT, new=row_to_dict(db_obj))

    def publish_update(self, db_obj: ModelType, old_data: Dict[str, Any]) -> None:
        if self.publishes_changes:
            publish_change(
                self.table, ChangeType.UPDATE, new=row_to_dict(db_obj), old=old_data
            )
