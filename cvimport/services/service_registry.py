"""
Service registry for managing named extraction services.

Lets callers choose between the remote model, a local model and the
rule-based fallback by name (e.g. from the CLI).
"""

from __future__ import annotations

from typing import Dict, List, Optional, Type

from .base import ExtractionService


# Global service registry
_SERVICE_REGISTRY: Dict[str, Type[ExtractionService]] = {}


def register_service(name: str, service_class: Type[ExtractionService]) -> None:
    """
    Register a service class in the global registry.

    Args:
        name: The name to register the service under (e.g., "openai")
        service_class: The service class to register
    """
    _SERVICE_REGISTRY[name] = service_class


def get_service(name: str, **kwargs) -> Optional[ExtractionService]:
    """
    Get a service instance by name.

    Args:
        name: The service name (e.g., "openai", "local", "rule-based")
        **kwargs: Arguments to pass to the service constructor

    Returns:
        Service instance, or None if not found
    """
    service_class = _SERVICE_REGISTRY.get(name)
    if service_class:
        return service_class(**kwargs)
    return None


def list_services() -> List[Dict[str, str]]:
    """
    List all registered services with their descriptions.

    Returns:
        List of dicts with 'name' and 'description' keys
    """
    services = []
    for name, service_class in _SERVICE_REGISTRY.items():
        description = service_class.__doc__ or "No description available"
        description = description.strip().split('\n')[0]
        services.append({
            'name': name,
            'description': description
        })
    return sorted(services, key=lambda x: x['name'])


def unregister_service(name: str) -> None:
    """
    Unregister a service from the global registry.

    Args:
        name: The service name to unregister
    """
    _SERVICE_REGISTRY.pop(name, None)


__all__ = [
    "register_service",
    "get_service",
    "list_services",
    "unregister_service",
]
