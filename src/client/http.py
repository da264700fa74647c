from typing import Any, Mapping, Optional, Protocol


class HttpResponse(Protocol):
    status_code: int

    def json(self) -> Any: ...


class HttpClient(Protocol):
    """The slice of an async HTTP client the agent relies on; ``httpx.AsyncClient`` fits."""

    async def get(
        self, url: str, *, params: Optional[Mapping] = None, headers: Optional[Mapping] = None
    ) -> HttpResponse: ...

    async def post(
        self,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping] = None,
        headers: Optional[Mapping] = None,
    ) -> HttpResponse: ...

    async def put(
        self,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping] = None,
        headers: Optional[Mapping] = None,
    ) -> HttpResponse: ...

    async def patch(
        self,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping] = None,
        headers: Optional[Mapping] = None,
    ) -> HttpResponse: ...

    async def delete(
        self, url: str, *, params: Optional[Mapping] = None, headers: Optional[Mapping] = None
    ) -> HttpResponse: ...

    async def head(
        self, url: str, *, params: Optional[Mapping] = None, headers: Optional[Mapping] = None
    ) -> HttpResponse: ...

    async def options(
        self, url: str, *, params: Optional[Mapping] = None, headers: Optional[Mapping] = None
    ) -> HttpResponse: ...
