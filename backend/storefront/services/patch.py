"""
Partial updates for mutable entities.

A Patch holds only the fields the caller actually sent. build_update() turns
it into a single UPDATE ... RETURNING statement whose column names come from
the table definition and whose values are all bound parameters, so nothing
the caller sends is ever spliced into SQL text.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional
from pydantic import BaseModel
from sqlalchemy import Table, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Update
from storefront.core.database import integrity_error_kind
from storefront.core.errors import (
    Conflict, InfrastructureError, NotFound, ValidationError,
)

logger = logging.getLogger(__name__)


class Patch:
    """Immutable mapping of field name -> new value for the supplied fields only"""

    def __init__(self, fields: Mapping[str, Any]):
        for name, value in fields.items():
            # null would be ambiguous between "clear" and "leave unchanged"
            if value is None:
                raise ValidationError(f"Field '{name}' cannot be null")
        self._fields = MappingProxyType(dict(fields))

    @classmethod
    def from_model(cls, model: BaseModel) -> "Patch":
        """Build a patch from the fields explicitly set on a request model"""
        return cls(model.model_dump(exclude_unset=True))

    @property
    def fields(self) -> Mapping[str, Any]:
        return self._fields

    def is_empty(self) -> bool:
        return not self._fields

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __repr__(self) -> str:
        # Values may include passwords, only show the field names
        return f"Patch(fields={sorted(self._fields)})"


def build_update(
    table: Table,
    entity_id: Any,
    patch: Patch,
    allowed: Iterable[str],
) -> Update:
    """
    Build one UPDATE statement touching exactly the fields in patch.

    Raises ValidationError when entity_id is missing, when the patch is
    empty, or when it names a field outside allowed.
    """
    if entity_id is None:
        raise ValidationError("An identifier is required for an update")
    if patch.is_empty():
        raise ValidationError("At least one field must be provided")

    allowed = set(allowed)
    unknown = sorted(name for name in patch.fields if name not in allowed)
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

    # Keys are Column objects from the table, never caller-supplied strings
    values = {table.c[name]: value for name, value in patch.fields.items()}
    return (
        update(table)
        .where(table.c.id == entity_id)
        .values(values)
        .returning(*table.c)
    )


def apply_patch(
    db: Session,
    table: Table,
    entity_id: Any,
    patch: Patch,
    allowed: Iterable[str],
    transforms: Optional[Dict[str, Callable[[Any], Any]]] = None,
) -> Dict[str, Any]:
    """
    Apply a patch and return the updated row as a dict.

    transforms maps a field name to a function applied to its value before
    binding (e.g. hashing a new password). Raises NotFound when no row has
    entity_id, Conflict when the new values break a unique constraint and
    ValidationError when they break a check constraint.
    """
    if transforms:
        patch = Patch({
            name: transforms[name](value) if name in transforms else value
            for name, value in patch.fields.items()
        })

    stmt = build_update(table, entity_id, patch, allowed)

    try:
        row = db.execute(stmt).mappings().first()
        if row is None:
            db.rollback()
            raise NotFound(f"No {table.name} row with id {entity_id}")
        updated = dict(row)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        kind = integrity_error_kind(e)
        if kind == "unique":
            raise Conflict(f"Update conflicts with an existing {table.name} row")
        if kind == "check":
            raise ValidationError(f"Values break a {table.name} constraint")
        if kind == "foreign_key":
            raise NotFound("Referenced row not found")
        logger.error(f"Error updating {table.name} {entity_id}: {str(e)}")
        raise InfrastructureError(str(e)) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating {table.name} {entity_id}: {str(e)}")
        raise InfrastructureError(str(e)) from e

    logger.info(f"Updated {table.name} {entity_id}: {sorted(patch.fields)}")
    return updated
