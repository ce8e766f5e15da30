"""Settings, model catalog and GitHub Copilot login routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ai_box.api.dependencies import get_settings_service
from ai_box.llm.types import ModelInfo
from ai_box.models.dto import (
    CopilotStatusResponse,
    DeviceCodeResponse,
    DevicePollRequest,
    DevicePollResponse,
    ModelResponse,
    SettingValueRequest,
    StatusResponse,
)
from ai_box.services.settings import SettingsService

router = APIRouter()


@router.get("/settings", response_model=dict[str, str], summary="Stored settings with secrets masked")
def get_settings(service: SettingsService = Depends(get_settings_service)) -> dict[str, str]:
    return service.get_all(masked=True)


@router.put("/settings/{key}", response_model=StatusResponse, summary="Store a setting")
def put_setting(
    key: str,
    request: SettingValueRequest,
    service: SettingsService = Depends(get_settings_service),
) -> StatusResponse:
    service.set(key, request.value)
    return StatusResponse()


@router.delete("/settings/{key}", response_model=StatusResponse, summary="Remove a setting")
def delete_setting(key: str, service: SettingsService = Depends(get_settings_service)) -> StatusResponse:
    if not service.delete(key):
        raise HTTPException(status_code=404, detail="Setting not found")
    return StatusResponse()


@router.get("/models", response_model=list[ModelResponse], summary="Models for configured providers")
def list_models(service: SettingsService = Depends(get_settings_service)) -> list[ModelResponse]:
    return [_to_model(model) for model in service.available_models()]


@router.get("/copilot/models", response_model=list[ModelResponse], summary="Models offered by GitHub Copilot")
def list_copilot_models(service: SettingsService = Depends(get_settings_service)) -> list[ModelResponse]:
    return [_to_model(model) for model in service.copilot_models()]


@router.post("/copilot/login", response_model=DeviceCodeResponse, summary="Start the device authorization flow")
def start_copilot_login(service: SettingsService = Depends(get_settings_service)) -> DeviceCodeResponse:
    device = service.copilot_start_login()
    return DeviceCodeResponse(
        device_code=device.device_code,
        user_code=device.user_code,
        verification_uri=device.verification_uri,
        interval=device.interval,
        expires_in=device.expires_in,
    )


@router.post("/copilot/login/poll", response_model=DevicePollResponse, summary="Poll the device authorization flow")
def poll_copilot_login(
    request: DevicePollRequest,
    service: SettingsService = Depends(get_settings_service),
) -> DevicePollResponse:
    token = service.copilot_poll_login(request.device_code)
    return DevicePollResponse(status="pending" if token is None else "complete")


@router.get("/copilot/status", response_model=CopilotStatusResponse, summary="Whether a Copilot token is stored")
def copilot_status(service: SettingsService = Depends(get_settings_service)) -> CopilotStatusResponse:
    return CopilotStatusResponse(logged_in=service.copilot_is_logged_in())


@router.delete("/copilot/login", response_model=StatusResponse, summary="Forget the Copilot token")
def copilot_logout(service: SettingsService = Depends(get_settings_service)) -> StatusResponse:
    service.copilot_logout()
    return StatusResponse()


def _to_model(model: ModelInfo) -> ModelResponse:
    return ModelResponse(id=model.id, name=model.name, provider=model.provider)


__all__ = ["router"]
