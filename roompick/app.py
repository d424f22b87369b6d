from __future__ import annotations

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .errors import RoomPickError
from .rooms.schemas import NextShopResponse, ResultResponse, VoteRequest, VoteResponse
from .rooms.service import get_result, next_comparison_for, submit_votes

app = FastAPI(title="Room Decision API", version="1.0.0")


@app.exception_handler(RoomPickError)
def room_error_handler(request: Request, exc: RoomPickError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code or 500, content={"detail": exc.message})


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ── Room endpoints ───────────────────────────────────────────────────────


@app.post("/rooms/{room_id}/vote", response_model=VoteResponse)
def vote(room_id: str, body: VoteRequest) -> VoteResponse:
    return submit_votes(room_id, body.user_id, body.items())


@app.get("/rooms/{room_id}/next-shop", response_model=NextShopResponse)
def next_shop(
    room_id: str,
    user_id: str | None = None,
    size: int | None = Query(default=None, ge=2, le=3),
) -> NextShopResponse:
    return next_comparison_for(room_id, user_id, size)


@app.get("/rooms/{room_id}/result", response_model=ResultResponse)
def result(room_id: str) -> ResultResponse:
    return get_result(room_id)
