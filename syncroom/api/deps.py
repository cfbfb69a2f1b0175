from fastapi import Request

from syncroom.core.state import AppState


def get_app_state(request: Request) -> AppState:
    return request.app.state.syncroom
