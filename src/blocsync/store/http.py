"""REST implementation of :class:`~blocsync.store.base.BlocStore`.

Endpoints, relative to ``BlocSyncConfig.base_url``:

=========================  ================================  =========================
Operation                  Request                           Response body
=========================  ================================  =========================
create_bloc                ``POST /blocs``                   ``{"id": str}``
update_bloc_content        ``PATCH /blocs/{id}/content``     ``{"status": 1|0|-1}``
update_bloc_position       ``PATCH /blocs/{id}/position``    ``{"status": 1|0|-1}``
update_bloc_page_id        ``PATCH /blocs/{id}/page``        ``{"ok": bool}``
delete_bloc                ``DELETE /blocs/{id}``            ``{"ok": bool}``
delete_bloc_by_page_id     ``DELETE /pages/{id}/blocs``      ``{"ok": bool}``
get_bloc_by_id             ``GET /blocs/{id}``               bloc object, 404 if absent
get_blocs_by_page_id       ``GET /pages/{id}/blocs``         paginated bloc objects
=========================  ================================  =========================

Transport errors propagate; the sync engine's executor catches and reports
them.
"""

from __future__ import annotations

from typing import Any

from blocsync.config import BlocSyncConfig
from blocsync.errors import BlocSyncNotFoundError
from blocsync.models import Bloc, WriteStatus

from .transport import AsyncBlocTransport


def _status(data: Any) -> WriteStatus:
    raw = data.get("status") if isinstance(data, dict) else None
    try:
        return WriteStatus(int(raw))
    except (TypeError, ValueError):
        return WriteStatus.ERROR


def _ok(data: Any) -> bool:
    return bool(data.get("ok")) if isinstance(data, dict) else False


class HttpBlocStore:
    """Bloc store backed by a REST API.

    Parameters
    ----------
    config:
        Configuration for the underlying transport.  Ignored when
        *transport* is given.
    transport:
        A ready :class:`AsyncBlocTransport`.
    """

    def __init__(
        self,
        config: BlocSyncConfig | None = None,
        *,
        transport: AsyncBlocTransport | None = None,
    ) -> None:
        self._transport = transport or AsyncBlocTransport(config or BlocSyncConfig())

    async def create_bloc(self, bloc: Bloc) -> str:
        data = await self._transport.request("POST", "/blocs", json=bloc.to_dict())
        return str(data.get("id") or "") if isinstance(data, dict) else ""

    async def update_bloc_content(
        self, bloc_id: str, content: str, updated_at: int
    ) -> WriteStatus:
        data = await self._transport.request(
            "PATCH",
            f"/blocs/{bloc_id}/content",
            json={"content": content, "updated_at": updated_at},
        )
        return _status(data)

    async def update_bloc_position(
        self, bloc_id: str, position: str, updated_at: int
    ) -> WriteStatus:
        data = await self._transport.request(
            "PATCH",
            f"/blocs/{bloc_id}/position",
            json={"position": position, "updated_at": updated_at},
        )
        return _status(data)

    async def update_bloc_page_id(self, bloc_id: str, new_page_id: str) -> bool:
        data = await self._transport.request(
            "PATCH", f"/blocs/{bloc_id}/page", json={"page_id": new_page_id}
        )
        return _ok(data)

    async def delete_bloc(self, bloc_id: str) -> bool:
        return _ok(await self._transport.request("DELETE", f"/blocs/{bloc_id}"))

    async def delete_bloc_by_page_id(self, page_id: str) -> bool:
        return _ok(await self._transport.request("DELETE", f"/pages/{page_id}/blocs"))

    async def get_bloc_by_id(self, bloc_id: str) -> Bloc | None:
        try:
            data = await self._transport.request("GET", f"/blocs/{bloc_id}")
        except BlocSyncNotFoundError:
            return None
        return Bloc.from_dict(data)

    async def get_blocs_by_page_id(self, page_id: str) -> list[Bloc]:
        blocs = [
            Bloc.from_dict(item)
            async for item in self._transport.paginate(f"/pages/{page_id}/blocs")
        ]
        return sorted(blocs, key=lambda b: b.position)

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> HttpBlocStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
