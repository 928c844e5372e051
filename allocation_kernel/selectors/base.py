"""Shared base for read-side query classes."""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Runs queries on a caller-owned session and returns DTOs.

    Selectors never add, delete, flush or end the transaction; the service
    that created them decides when the read transaction ends.
    """

    def __init__(self, session: Session):
        self.session = session
