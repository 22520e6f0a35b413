from autonomia_api.models.company import Company
from autonomia_api.models.funnel import (
    ConversationFunnel,
    ConversationFunnelRegister,
    ConversationFunnelStep,
    ConversationFunnelStepMessage,
    DeliveryRecord,
)
from autonomia_api.models.product import Product
from autonomia_api.models.account import Account
from autonomia_api.models.parameter import (
    AccountParameter,
    AccountParameterStandard,
    ProductParameter,
    ProductParameterStandard,
)
from autonomia_api.models.contact import Contact
from autonomia_api.models.user_session import UserSession
from autonomia_api.models.inbox import Inbox
from autonomia_api.models.access import AccessProfile, User, UserAccessProfile, UserAccount
