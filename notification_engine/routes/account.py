"""
Account routes — the account subsystem reports session events here.
  GET  /account           — current session summary
  POST /account/login     — logged in with a token and expiry
  POST /account/expiry    — expiry changed (e.g. credit added)
  POST /account/logout    — session ended
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from notification_engine.services.account import Account

router = APIRouter(tags=["Account"])


class LoginRequest(BaseModel):
    token: str = Field(..., min_length=1)
    expiry: datetime


class ExpiryRequest(BaseModel):
    expiry: datetime


def _account(request: Request) -> Account:
    return request.app.state.account


@router.get("", summary="Current account session")
async def get_account(request: Request):
    account = _account(request)
    return {
        "logged_in": account.is_logged_in,
        "expiry": account.expiry.isoformat() if account.expiry else None,
    }


@router.post("/login", summary="Report a login")
async def login(body: LoginRequest, request: Request):
    _account(request).login(body.token, body.expiry)
    return {"status": "ok"}


@router.post("/expiry", summary="Report an expiry change")
async def update_expiry(body: ExpiryRequest, request: Request):
    _account(request).update_expiry(body.expiry)
    return {"status": "ok"}


@router.post("/logout", summary="Report a logout")
async def logout(request: Request):
    _account(request).logout()
    return {"status": "ok"}
