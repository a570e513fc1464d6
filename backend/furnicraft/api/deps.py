"""FastAPI dependencies resolving services from app.state."""

from fastapi import Request

from furnicraft.analysis.orchestrator import UploadOrchestrator
from furnicraft.analysis.poller import AnalysisPoller
from furnicraft.services import Services
from furnicraft.store.base import DesignStore
from furnicraft.utils.flowise import FlowiseClient


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(request: Request) -> DesignStore:
    return get_services(request).store


def get_orchestrator(request: Request) -> UploadOrchestrator:
    return get_services(request).orchestrator


def get_poller(request: Request) -> AnalysisPoller:
    return get_services(request).poller


def get_flowise(request: Request) -> FlowiseClient:
    return get_services(request).flowise
