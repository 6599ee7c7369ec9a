"""HTTP API: start workflows, poll their status, check health."""

from flowflex.api.app import build_gateway, create_app

__all__ = ['build_gateway', 'create_app']
