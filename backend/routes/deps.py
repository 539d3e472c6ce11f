"""Common dependencies for the API routes."""

from fastapi import Request

from backend.live_sheet import LiveSheet
from charsheet.core import SheetCore


def get_core(request: Request) -> SheetCore:
    return request.app.state.core


def get_sheet(request: Request) -> LiveSheet:
    return request.app.state.sheet
