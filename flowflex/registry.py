"""Process-start registry construction."""

from flowflex.activities import ACTIVITIES
from flowflex.runtime.registry import Registry
from flowflex.workflows import WORKFLOW_DEFINITIONS


def build_registry() -> Registry:
    """Registry holding every workflow definition and activity of the service."""
    registry = Registry()
    for definition in WORKFLOW_DEFINITIONS:
        registry.register_workflow(definition())
    for activity in ACTIVITIES:
        registry.register_activity(activity)
    return registry
