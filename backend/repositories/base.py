"""
Shared write helpers for repositories.

Every mutating repository method takes `commit`:
- commit=True: the statement is committed immediately (plain session use)
- commit=False: the statement is only flushed, so it joins whatever
  transaction the caller holds (see database.transaction)
"""

from typing import TypeVar

from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT")


def save(db: Session, instance: ModelT, commit: bool = True) -> ModelT:
    """Insert or update `instance`, then commit or flush."""
    db.add(instance)
    db.flush()  # Flush to surface constraint errors and assign defaults

    if commit:
        db.commit()
        db.refresh(instance)
    return instance


def remove(db: Session, instance, commit: bool = True) -> None:
    """Delete `instance`, then commit or flush."""
    db.delete(instance)
    db.flush()

    if commit:
        db.commit()
