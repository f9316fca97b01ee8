"""
Module: inventory_kernel.selectors.base
Responsibility: Base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain types.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return DTOs (frozen dataclasses) or scalars, never ORM rows.
    - The caller owns the session and its transaction scope.
    - Stock is derived from ledger rows at query time; nothing here reads a
      stored balance.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
