from fastapi import Request

from vintage_shop.core.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
