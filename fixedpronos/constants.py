# Тарифы подписки
PLAN_BASIC = "basic"
PLAN_PRO = "pro"
PLAN_VIP = "vip"
PLANS = (PLAN_BASIC, PLAN_PRO, PLAN_VIP)

# Длительность подписки в календарных месяцах для каждого тарифа
PLAN_DURATION_MONTHS = {
    PLAN_BASIC: 1,
    PLAN_PRO: 1,
    PLAN_VIP: 1,
}

# Уровни доступа к прогнозам (по возрастанию)
TIER_FREE = "free"
ACCESS_TIERS = (TIER_FREE, PLAN_BASIC, PLAN_PRO, PLAN_VIP)

# Способы оплаты
METHOD_CRYPTO = "crypto"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_BANK_TRANSFER = "bank_transfer"
PAYMENT_METHODS = (METHOD_CRYPTO, METHOD_MOBILE_MONEY, METHOD_BANK_TRANSFER)

METHOD_LABELS = {
    METHOD_CRYPTO: "Crypto",
    METHOD_MOBILE_MONEY: "MoneyFusion Mobile Money",
    METHOD_BANK_TRANSFER: "Virement bancaire",
}

# Статусы платежа: pending -> processing -> approved | rejected
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
PAYMENT_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_APPROVED, STATUS_REJECTED)
TERMINAL_STATUSES = frozenset({STATUS_APPROVED, STATUS_REJECTED})

# События MoneyFusion -> внутренний статус платежа
EVENT_STATUS_MAP = {
    "payin.session.pending": STATUS_PROCESSING,
    "payin.session.completed": STATUS_APPROVED,
    "payin.session.cancelled": STATUS_REJECTED,
    "payin.session.failed": STATUS_REJECTED,
}

# Статусы подписки
SUB_ACTIVE = "active"
SUB_CANCELED = "canceled"

# История транзакций
TRANSACTION_PAYMENT = "payment"
TRANSACTION_COMPLETED = "completed"

# Лимиты
MAX_CAS_ATTEMPTS = 3  # Повторы условного обновления статуса при гонке
MAX_PAGE_SIZE = 100
MAX_MANUAL_GRANT_MONTHS = 24
CLEANUP_INTERVAL_SECONDS = 600  # Интервал проверки истекших подписок (10 минут)
