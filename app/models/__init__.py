from app.models.user import User
from app.models.course import Course
from app.models.purchase import Purchase, PurchaseStatus
from app.models.purchase_event import PurchaseEvent
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.notifications import Notification
from app.models.chat import ChatRoom, ChatMember
from app.models.system_setting import SystemSetting

# add ALL models here
