from fastapi import Request

from lockbox.auth.base import AuthStrategy
from lockbox.core.config import Settings
from lockbox.storage.gateway import ObjectGateway


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_authenticator(request: Request) -> AuthStrategy:
    return request.app.state.authenticator


def get_gateway(request: Request) -> ObjectGateway:
    return request.app.state.gateway
