"""Application interfaces (ports): repository and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from app.infrastructure or app.api.
"""

from app.application.interfaces.repositories import (
    ICacheStore,
    IMembershipRepository,
    IPreferencesRepository,
    ITenantRepository,
    IUnitOfWork,
    IUserRepository,
    IWebhookEventRepository,
)
from app.application.interfaces.services import (
    ICrmClient,
    IPaymentsClient,
    IWebhookVerifier,
)

__all__ = [
    "ICacheStore",
    "ICrmClient",
    "IMembershipRepository",
    "IPaymentsClient",
    "IPreferencesRepository",
    "ITenantRepository",
    "IUnitOfWork",
    "IUserRepository",
    "IWebhookEventRepository",
    "IWebhookVerifier",
]
