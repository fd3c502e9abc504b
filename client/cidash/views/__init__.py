from .registry_view import RegistryView, project_registry
from .workflow_view import WorkflowView, project_workflow

__all__ = ["RegistryView", "WorkflowView", "project_registry", "project_workflow"]
