"""有界并发阶段驱动 + 发布阶段 + 清理阶段

三个阶段（拉取 → 发布 → 清理）共用 run_bounded:
  - 同时在途的工作单元不超过 max_tasks，其余排队
  - 每个单元的 (值, 异常) 收集进 StageReport，由阶段结束后统一汇总
  - 出现首个异常后停止派发新单元，等在途单元结束，再原样抛出首个异常
  - 不主动中断在途单元，也不设超时
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from fastinstall.core.exceptions import CleanupError, CopyError
from fastinstall.core.materialize import mirror

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class UnitOutcome(Generic[T]):
    """单个工作单元的结果"""

    item: T
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class StageReport(Generic[T]):
    """单个阶段的汇总，按完成顺序记录"""

    stage: str
    total: int = 0
    outcomes: list[UnitOutcome[T]] = field(default_factory=list)
    first_error: BaseException | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def not_dispatched(self) -> int:
        return self.total - len(self.outcomes)

    def values(self) -> list[Any]:
        return [o.value for o in self.outcomes if o.ok]

    def raise_for_error(self) -> None:
        if self.first_error is not None:
            raise self.first_error


def run_bounded(
    stage: str,
    items: Sequence[T],
    worker: Callable[[T], Any],
    max_tasks: int,
) -> StageReport[T]:
    """并发度受限地对 items 逐个执行 worker，返回阶段汇总

    工作单元的异常记录在汇总中，不直接抛出；max_tasks < 1 时抛 ValueError。
    """
    if max_tasks < 1:
        raise ValueError(f"max_tasks 必须 >= 1，实际: {max_tasks}")
    report: StageReport[T] = StageReport(stage=stage, total=len(items))
    if not items:
        return report

    pending = list(items)
    pending.reverse()
    in_flight: dict[Future[Any], T] = {}

    with ThreadPoolExecutor(
        max_workers=max_tasks, thread_name_prefix=f"fastinstall-{stage}",
    ) as executor:

        def dispatch() -> None:
            while pending and len(in_flight) < max_tasks:
                item = pending.pop()
                in_flight[executor.submit(worker, item)] = item

        dispatch()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                item = in_flight.pop(fut)
                error = fut.exception()
                if error is None:
                    report.outcomes.append(UnitOutcome(item, value=fut.result()))
                    continue
                report.outcomes.append(UnitOutcome(item, error=error))
                if report.first_error is None:
                    report.first_error = error
                    logger.error("[%s] 失败，停止派发新任务: %s", stage, error)
            if report.first_error is None:
                dispatch()

    logger.info(
        "[%s] 阶段结束: 成功 %d, 失败 %d, 未执行 %d",
        stage, report.succeeded, report.failed, report.not_dispatched,
    )
    return report


def package_name_of(entry: Path) -> str:
    """由缓存项路径 <root>/<name>/<version>/<arch>/<abi> 还原包名，兼容 @scope/pkg"""
    if len(entry.parts) < 5:
        return entry.name
    pkg_dir = entry.parents[2]
    scope = pkg_dir.parent.name
    if scope.startswith("@"):
        return f"{scope}/{pkg_dir.name}"
    return pkg_dir.name


# =========================================================================
# 发布阶段: 缓存项 -> 目标目录（总是复制，缓存保持完整供后续复用）
# =========================================================================

def publish_all(
    entries: Sequence[Path], destination: Path, max_tasks: int,
) -> StageReport[Path]:
    """把每个缓存项的内容合并复制到 destination，首个失败即抛出"""

    def publish_one(entry: Path) -> Path:
        logger.info("从缓存安装: %s", entry)
        try:
            mirror(entry, destination)
        except CopyError as e:
            e.stage = "publish"
            e.dependency = e.dependency or package_name_of(entry)
            raise
        return entry

    report = run_bounded("publish", entries, publish_one, max_tasks)
    report.raise_for_error()
    return report


# =========================================================================
# 清理阶段: 删除拉取时使用的临时目录
# =========================================================================

def cleanup_all(scratch_dirs: Sequence[Path], max_tasks: int) -> StageReport[Path]:
    """删除临时目录，不存在的视为已清理；首个失败即抛出 CleanupError"""

    def cleanup_one(path: Path) -> bool:
        if not path.exists():
            logger.debug("临时目录不存在，跳过: %s", path)
            return False
        logger.info("清理: %s", path)
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise CleanupError(f"删除临时目录失败: {path}: {e}", stage="cleanup") from e
        return True

    report = run_bounded("cleanup", scratch_dirs, cleanup_one, max_tasks)
    report.raise_for_error()
    return report
