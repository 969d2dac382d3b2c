"""
In-process workflow registry.

Workflows live only as long as the process does. When the cap is reached the
oldest workflow is torn down and evicted.
"""
from collections import OrderedDict
from typing import Optional

from setupflow.core.controller import ProviderFactory, WorkflowController
from setupflow.core.errors import WorkflowNotFound
from setupflow.observability.logging import log
from setupflow.provider.stripe_client import build_provider
from setupflow.settings import settings


class WorkflowRegistry:
    def __init__(self, provider_factory: Optional[ProviderFactory] = None, max_active: Optional[int] = None):
        self.provider_factory = provider_factory or build_provider
        self.max_active = settings.WORKFLOW_MAX_ACTIVE if max_active is None else max_active
        if self.max_active < 1:
            raise ValueError("max_active must be at least 1")
        self._workflows: "OrderedDict[str, WorkflowController]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._workflows)

    def create(self) -> WorkflowController:
        controller = WorkflowController(self.provider_factory, return_url=settings.return_url)
        self._workflows[controller.workflow_id] = controller
        while len(self._workflows) > self.max_active:
            old_id, old = self._workflows.popitem(last=False)
            old.teardown()
            log(event="workflow_evicted", workflowId=old_id)
        log(event="workflow_created", workflowId=controller.workflow_id)
        return controller

    def get(self, workflow_id: str) -> WorkflowController:
        controller = self._workflows.get(workflow_id)
        if controller is None:
            raise WorkflowNotFound(workflow_id)
        return controller

    def find(self, workflow_id: Optional[str]) -> Optional[WorkflowController]:
        if not workflow_id:
            return None
        return self._workflows.get(workflow_id)

    def remove(self, workflow_id: str) -> None:
        controller = self._workflows.pop(workflow_id, None)
        if controller is None:
            raise WorkflowNotFound(workflow_id)
        controller.teardown()
        log(event="workflow_removed", workflowId=workflow_id)


_registry: Optional[WorkflowRegistry] = None


def get_registry() -> WorkflowRegistry:
    global _registry
    if _registry is None:
        _registry = WorkflowRegistry()
    return _registry
