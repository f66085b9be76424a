# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  投递错误分类 - 将重发失败分为可重试和不可重试，并计算重试退避延迟
  Delivery error classification - splits resend failures into retryable and
  permanent, and computes the backoff delay between sync retries.
"""

import random
from typing import List, Optional, Tuple

from lianyu.exceptions import NetworkError

# Client errors that are still worth retrying later
# 仍值得稍后重试的客户端错误
RETRYABLE_STATUS_CODES = (408, 425, 429)


def classify_delivery_error(error: Exception) -> Tuple[bool, str]:
    """
    将重发错误分类为可重试或不可重试

    Classify a resend failure.

    - 传输失败（离线、超时、连接被拒）/ Transport failures: retryable
    - 5xx 服务器错误 / Server errors: retryable
    - 408 / 425 / 429: retryable
    - 其他 4xx / Other client errors: permanent, the entry will never succeed

    Args:
        error: 重发时抛出的异常 / Exception raised by the resend

    Returns:
        元组 (is_retryable, reason) / Tuple of (is_retryable, reason)

    Example:
        >>> classify_delivery_error(NetworkError("HTTP 400: Bad Request", status_code=400))
        (False, 'rejected:400')
        >>> classify_delivery_error(NetworkError("Network connection failed"))
        (True, 'transport_error')
    """
    if isinstance(error, NetworkError):
        status = error.status_code
        if status is None:
            return True, "transport_error"
        if status >= 500:
            return True, f"server_error:{status}"
        if status in RETRYABLE_STATUS_CODES:
            return True, f"throttled:{status}"
        if 400 <= status < 500:
            return False, f"rejected:{status}"
        return True, f"unexpected_status:{status}"

    # Unknown errors stay queued; the max-age expiry bounds them.
    return True, "unknown_error"


def get_retry_delay(
    attempt: int,
    base_delays: Optional[List[float]] = None,
    max_delay: float = 300.0,
) -> float:
    """
    计算带指数退避和抖动的重试延迟

    Calculate the delay before the next automatic drain pass.

    - 前几次尝试使用预定义的延迟：[5, 10, 20, 40, 80]
    - 之后每次延迟翻倍，最大 max_delay 秒
    - 添加0-10%的随机抖动

    Args:
        attempt: 连续失败的排空次数（从0开始）/ Consecutive failed drains (0-indexed)
        base_delays: 每次尝试的基础延迟（秒）/ Base delay per attempt in seconds
        max_delay: 最大延迟（秒）/ Maximum delay in seconds

    Returns:
        延迟时间（秒）/ Delay in seconds
    """
    if base_delays is None:
        base_delays = [5, 10, 20, 40, 80]

    if attempt < len(base_delays):
        delay = base_delays[attempt]
    else:
        delay = base_delays[-1] * (2 ** (attempt - len(base_delays) + 1))

    delay = min(delay, max_delay)
    jitter = delay * random.uniform(0, 0.1)
    return delay + jitter
