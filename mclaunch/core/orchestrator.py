#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
下載協調器模組
以有限併發的執行緒池執行下載工作，並透過不阻塞的佇列推送進度事件
Download Orchestrator Module
Runs download jobs on a bounded thread pool and pushes progress events through a non-blocking queue
"""
# ====== 標準函式庫 ======
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar, Union
import queue
import threading
# ====== 專案內部模組 ======
from ..utils.http_utils import HTTPUtils
from ..utils.logger import get_logger
from ..utils.settings_manager import get_settings_manager

logger = get_logger().bind(component="Orchestrator")

T = TypeVar("T")


# ====== 進度傳送 ======
class ProgressSender:
    """
    單向進度通道：生產者永遠不會因為沒有讀取者而阻塞
    One-way progress channel; producers never block on the reader

    Args:
        channel (queue.Queue | None): 呼叫端提供的佇列，None 表示不需要進度
    """

    def __init__(self, channel: Optional[queue.Queue] = None):
        self.channel = channel

    def send(self, event: Any) -> None:
        if self.channel is None:
            return
        try:
            self.channel.put_nowait(event)
        except queue.Full:
            # 讀取端跟不上時直接丟棄事件
            pass

    @classmethod
    def wrap(cls, sender: Union["ProgressSender", queue.Queue, None]) -> "ProgressSender":
        if isinstance(sender, ProgressSender):
            return sender
        return cls(sender)


class ProgressCounter:
    """互斥鎖保護、單調遞增的計數器，只用來產生 "N of M" 訊息"""

    def __init__(self, total: int = 0):
        self.total = total
        self._value = 0
        self._lock = threading.Lock()

    def step(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


# ====== 工作執行 ======
@dataclass
class JobResult(Generic[T]):
    """收集模式下單一工作的結果"""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _limit(limit: Optional[int]) -> int:
    return max(1, limit if limit is not None else get_settings_manager().get_download_concurrency())


def do_jobs(jobs: Iterable[Callable[[], T]], limit: Optional[int] = None) -> List[T]:
    """
    以有限併發執行所有工作，第一個錯誤即中止 (fail-fast)
    Run all jobs with bounded concurrency, aborting on the first failure

    尚未開始的工作會被取消，執行中的工作完成後再拋出第一個錯誤。

    Args:
        jobs: 無參數的可呼叫物件
        limit: 最大併發數，None 時使用設定值

    Returns:
        list: 與 jobs 同順序的結果
    """
    job_list = list(jobs)
    if not job_list:
        return []

    with ThreadPoolExecutor(max_workers=min(_limit(limit), len(job_list))) as executor:
        futures: List[Future] = [executor.submit(job) for job in job_list]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = next((f for f in futures if f in done and f.exception() is not None), None)
        if failed is not None:
            for f in pending:
                f.cancel()
            wait(pending)
            raise failed.exception()
    return [f.result() for f in futures]


def do_jobs_collect(jobs: Iterable[Callable[[], T]], limit: Optional[int] = None) -> List[JobResult[T]]:
    """
    執行所有工作並收集每個工作的結果或錯誤
    Run every job and collect each value or error
    """
    job_list = list(jobs)
    if not job_list:
        return []

    def run(job: Callable[[], T]) -> JobResult[T]:
        try:
            return JobResult(value=job())
        except Exception as e:  # noqa: BLE001 - 收集模式需要保留每個錯誤
            logger.debug(f"工作失敗: {e}")
            return JobResult(error=e)

    with ThreadPoolExecutor(max_workers=min(_limit(limit), len(job_list))) as executor:
        return list(executor.map(run, job_list))


def retry(fn: Callable[[], T], attempts: Optional[int] = None) -> T:
    """網路清單抓取的重試包裝，次數預設取自設定"""
    if attempts is None:
        attempts = get_settings_manager().get_list_fetch_retries()
    return HTTPUtils.with_retry(fn, attempts)
