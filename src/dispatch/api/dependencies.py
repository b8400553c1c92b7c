"""Request-scoped dependencies: the authenticated principal and the services."""

from fastapi import Header, HTTPException, Request

from dispatch.assignment.engine import AssignmentEngine
from dispatch.identity import InvalidToken, Principal, bearer_token
from dispatch.order.lifecycle import OrderLifecycle


def current_principal(request: Request, authorization: str | None = Header(None)) -> Principal:
    try:
        return request.app.state.verifier.verify(bearer_token(authorization))
    except InvalidToken as exc:
        raise HTTPException(status_code=401, detail="Invalid or missing token") from exc


def get_lifecycle(request: Request) -> OrderLifecycle:
    return request.app.state.lifecycle


def get_engine(request: Request) -> AssignmentEngine:
    return request.app.state.engine
