"""
External directories consulted by the ledger.

The ledger does not own companies or users.  When a service is handed a
directory it checks ids against it; when it is not, ids are taken as given.
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.exceptions import ActorNotFoundError, CompanyNotFoundError


@runtime_checkable
class CompanyDirectory(Protocol):
    def exists(self, company_id: UUID) -> bool: ...


@runtime_checkable
class ActorDirectory(Protocol):
    def exists(self, actor_id: UUID) -> bool: ...


class StaticDirectory:
    """In-memory directory over a fixed set of ids."""

    def __init__(self, ids: Iterable[UUID] = ()):
        self._ids = set(ids)

    def add(self, id_: UUID) -> None:
        self._ids.add(id_)

    def exists(self, id_: UUID) -> bool:
        return id_ in self._ids


class DirectoryChecks:
    """Mixin giving services optional company / actor existence checks."""

    companies: CompanyDirectory | None = None
    actors: ActorDirectory | None = None

    def _require_company(self, company_id: UUID) -> None:
        if self.companies is not None and not self.companies.exists(company_id):
            raise CompanyNotFoundError(company_id)

    def _require_actor(self, actor_id: UUID) -> None:
        if self.actors is not None and not self.actors.exists(actor_id):
            raise ActorNotFoundError(actor_id)
