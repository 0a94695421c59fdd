import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    BAR_MANAGER = "bar_manager"
    WAREHOUSE_MANAGER = "warehouse_manager"
    BARMAN = "barman"


class Location(str, enum.Enum):
    """The three bar locations fed by the warehouse."""
    DUZY_BULLDOG = "duzy_bulldog"
    MALY_BULLDOG = "maly_bulldog"
    GIN_BAR = "gin_bar"


# Used as from_location on transfers and as the alert location for warehouse stock
WAREHOUSE = "warehouse"


class ProductCategory(str, enum.Enum):
    SPIRITS = "spirits"
    BEER = "beer"
    WINE = "wine"
    SOFT_DRINKS = "soft_drinks"
    MIXERS = "mixers"
    GARNISHES = "garnishes"
    OTHER = "other"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ReportType(str, enum.Enum):
    DAILY = "daily"
    SHIFT = "shift"
    INVENTORY = "inventory"
    USAGE = "usage"
    DELIVERY = "delivery"
    FORECAST = "forecast"
    CUSTOM = "custom"


class ActivityType(str, enum.Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STOCK_CHANGE = "stock_change"
    DELIVERY = "delivery"
    REPORT_GENERATED = "report_generated"


class StockStatus(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
