from guincho.models.provider import Provider
from guincho.models.provider_subscription import ProviderSubscription
from guincho.models.provider_customization import ProviderCustomization
from guincho.models.provider_payment import ProviderPayment
from guincho.models.provider_online_status import ProviderOnlineStatus

__all__ = [
    "Provider", "ProviderSubscription", "ProviderCustomization",
    "ProviderPayment", "ProviderOnlineStatus",
]
