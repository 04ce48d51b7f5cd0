from ocrbatch.models.dto import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TAB,
    TABS,
    TERMINAL_STATUSES,
    UNAVAILABLE,
    BatchItem,
    Block,
    DetailRecord,
    ItemStatus,
    ResultRecord,
    Statistics,
    UIState,
    clamp_batch_size,
    parse_detail,
    parse_result_list,
    parse_statistics,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_TAB",
    "TABS",
    "TERMINAL_STATUSES",
    "UNAVAILABLE",
    "BatchItem",
    "Block",
    "DetailRecord",
    "ItemStatus",
    "ResultRecord",
    "Statistics",
    "UIState",
    "clamp_batch_size",
    "parse_detail",
    "parse_result_list",
    "parse_statistics",
]
