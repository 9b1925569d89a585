# fairdice_be/services/access_control.py

from abc import ABC, abstractmethod

from flask import current_app
from sqlalchemy import select

from ..models import db, HouseLedger


class AccessControl(ABC):
    """Capability checks consulted by the betting engine and the admin surface."""

    @abstractmethod
    def is_admin(self, user) -> bool:
        ...

    @abstractmethod
    def is_funds_controller(self, user) -> bool:
        ...

    @abstractmethod
    def is_oracle(self, user) -> bool:
        ...

    @abstractmethod
    def paused(self) -> bool:
        ...


class DatabaseAccessControl(AccessControl):
    """Roles are flags on the user row; the pause switch lives on the house ledger."""

    @staticmethod
    def _has_flag(user, flag):
        return bool(user is not None and user.is_active and getattr(user, flag, False))

    def is_admin(self, user) -> bool:
        return self._has_flag(user, 'is_admin')

    def is_funds_controller(self, user) -> bool:
        return self._has_flag(user, 'is_funds_controller')

    def is_oracle(self, user) -> bool:
        return self._has_flag(user, 'is_oracle')

    def paused(self) -> bool:
        return bool(db.session.scalar(select(HouseLedger.paused).order_by(HouseLedger.id).limit(1)))


def get_access_control() -> AccessControl:
    """Access control registered on the app, database flags by default."""
    return current_app.extensions.get('fairdice_access_control') or DatabaseAccessControl()
