from fastapi import HTTPException, Request

from jewelry_retail.errors import NotFoundError


def http_error_from(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def get_actor(request: Request) -> str | None:
    actor = request.headers.get('x-actor')
    if actor:
        return actor.strip() or None
    return None
