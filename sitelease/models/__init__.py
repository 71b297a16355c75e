from sitelease.models.account import Account
from sitelease.models.deployment import Deployment, DeploymentState
from sitelease.models.processed_webhook_event import ProcessedWebhookEvent

__all__ = [
    "Account",
    "Deployment",
    "DeploymentState",
    "ProcessedWebhookEvent",
]
