"""
Database models - import all models here so Alembic can discover them.
"""
from src.models.workflow import Workflow
from src.models.trigger import Trigger
from src.models.webhook_secret import WebhookSecret
from src.models.execution import Execution
from src.models.webhook_log import WebhookCallLog
from src.models.task import Task
from src.models.integration_config import IntegrationConfig

__all__ = [
    "Workflow",
    "Trigger",
    "WebhookSecret",
    "Execution",
    "WebhookCallLog",
    "Task",
    "IntegrationConfig",
]
