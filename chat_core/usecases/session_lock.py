"""会话级锁，避免同一会话的并发轮次互相覆盖。

不加锁时，两个针对同一 chat_id 的并发请求会各自读取同一份旧状态、
各自修改内存副本，后保存的一方覆盖先保存的一方。这里为每个 chat_id
维护一把锁，同一会话的轮次串行执行，不同会话之间仍可并行。

锁在流式生成器的整个生命周期内持有，因此等待有上限：超过 timeout
仍拿不到锁时抛出 ChatBusyError，而不是无限阻塞（例如同一线程里交错
消费同一会话的两个生成器，或某个生成器被遗弃而未 close）。
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from chat_core.domain.exceptions import ChatBusyError
from chat_core.infrastructure.logging.logger import logger


DEFAULT_LOCK_TIMEOUT = 30.0


class SessionLockManager:
    """按 session_id 分配锁；记录持有/等待者数量，归零即移除，字典不会无限增长。"""

    def __init__(self, timeout: Optional[float] = DEFAULT_LOCK_TIMEOUT):
        # None 表示无限等待
        self._timeout = timeout
        # session_id -> [lock, 持有或等待该锁的调用方数量]
        self._locks: Dict[str, List] = {}
        self._global_lock = threading.Lock()

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        """获取某个会话的锁，退出上下文时自动释放。

        Raises:
            ChatBusyError: 在 timeout 内没有拿到锁。
        """

        with self._global_lock:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[session_id] = entry
            entry[1] += 1
        lock: threading.Lock = entry[0]
        try:
            acquired = lock.acquire(timeout=-1 if self._timeout is None else self._timeout)
            if not acquired:
                logger.warning("Session lock timed out", extra={"extra": {"chat_id": session_id}})
                raise ChatBusyError(session_id, self._timeout)
            logger.debug("Session lock acquired", extra={"extra": {"chat_id": session_id}})
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._global_lock:
                entry[1] -= 1
                if entry[1] == 0 and self._locks.get(session_id) is entry:
                    del self._locks[session_id]

    def is_locked(self, session_id: str) -> bool:
        with self._global_lock:
            entry = self._locks.get(session_id)
        return entry[0].locked() if entry else False

    def get_lock_count(self) -> int:
        with self._global_lock:
            return len(self._locks)
