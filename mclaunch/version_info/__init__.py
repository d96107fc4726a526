"""版本資訊與應用程式常數 (package)

此資料夾用於分類版本資訊；對外匯入方式：
from mclaunch.version_info import APP_NAME, APP_VERSION, ...
"""

from .version_info import (
    APP_DESCRIPTION,
    APP_NAME,
    APP_VERSION,
    LAUNCHER_VERSION_NAME,
    USER_AGENT,
)

__all__ = [
    "APP_DESCRIPTION",
    "APP_NAME",
    "APP_VERSION",
    "LAUNCHER_VERSION_NAME",
    "USER_AGENT",
]
