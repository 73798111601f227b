"""依赖拉取编排器

职责:
- 对每个声明依赖执行 检查缓存 → 解析版本 → 拉取构建 → 发布到缓存
- 有界并发（run_bounded），首个失败终止整批
- 汇总缓存项路径、临时目录和每个依赖的处理结果

单个依赖的处理是一个小状态机:

    CHECKING ──命中──────────────────────────────> DONE (cached)
       │
    RESOLVING ──命中─────────────────────────────> DONE (cached)
       │
    FETCHING
       │
    PUBLISHING ──已被并发任务写入──> DONE (abandoned)
       │
      DONE (fetched)

任一步骤抛出 FastInstallError 即进入 FAILED。
三次存在性检查是唯一的去重手段（默认不加锁），同键并发时允许重复拉取。
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from fastinstall.core.dep.cache import CacheStore, OptimisticGuard
from fastinstall.core.dep.models import CacheKey, Dependency, ResolvedVersion
from fastinstall.core.dep.resolver import DependencyResolver, exact_version
from fastinstall.core.exceptions import FastInstallError, FetchError, PublishError
from fastinstall.core.materialize import PathMaterializer
from fastinstall.core.protocols import CacheGuard, PackageResolver
from fastinstall.core.stages import run_bounded

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "npm-fast-install-"
# npm install --prefix <scratch> 的产物目录
PAYLOAD_DIR = "node_modules"


class TaskState(str, enum.Enum):
    CHECKING = "checking"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class DependencyJob:
    """单个依赖在流水线中的处理上下文"""

    dep: Dependency
    state: TaskState = TaskState.CHECKING
    resolved: ResolvedVersion | None = None
    key: CacheKey | None = None
    cache_path: Path | None = None
    scratch_dir: Path | None = None
    outcome: str = ""  # cached / fetched / abandoned
    error: FastInstallError | None = None

    @property
    def version(self) -> str:
        if self.resolved is not None:
            return self.resolved.version
        return self.key.version if self.key else ""


@dataclass
class FetchReport:
    """拉取阶段汇总"""

    jobs: list[DependencyJob] = field(default_factory=list)

    @property
    def cache_entries(self) -> list[Path]:
        paths = (j.cache_path for j in self.jobs if j.cache_path is not None)
        return list(dict.fromkeys(paths))

    @property
    def scratch_dirs(self) -> list[Path]:
        return [j.scratch_dir for j in self.jobs if j.scratch_dir is not None]

    def count(self, outcome: str) -> int:
        return sum(1 for j in self.jobs if j.outcome == outcome)

    @property
    def stats(self) -> dict[str, int]:
        return {o: self.count(o) for o in ("cached", "fetched", "abandoned")}


class FetchOrchestrator:
    """有界并发的缓存填充流水线"""

    def __init__(
        self,
        cache: CacheStore,
        package_resolver: PackageResolver,
        *,
        arch: str,
        abi_tag: str,
        materializer: PathMaterializer | None = None,
        guard: CacheGuard | None = None,
        scratch_root: Path | None = None,
    ) -> None:
        self.cache = cache
        self.package_resolver = package_resolver
        self.resolver = DependencyResolver(package_resolver)
        self.arch = arch
        self.abi_tag = abi_tag
        self.materializer = materializer or PathMaterializer()
        self.guard = guard or OptimisticGuard()
        self.scratch_root = scratch_root
        self._transitions: dict[TaskState, Callable[[DependencyJob], TaskState]] = {
            TaskState.CHECKING: self.check,
            TaskState.RESOLVING: self.resolve,
            TaskState.FETCHING: self.fetch,
            TaskState.PUBLISHING: self.publish,
        }

    def key_for(self, name: str, version: str) -> CacheKey:
        return self.cache.key_for(name, version, self.arch, self.abi_tag)

    # ------------------------------------------------------------------
    # 状态转移，每个方法返回下一个状态
    # ------------------------------------------------------------------

    def check(self, job: DependencyJob) -> TaskState:
        """快速路径: 范围本身是精确版本且已缓存时，不访问外部解析器"""
        version = exact_version(job.dep.version_range)
        if version is None:
            return TaskState.RESOLVING
        key = self.key_for(job.dep.name, version)
        if not self.cache.exists(key):
            return TaskState.RESOLVING
        return self._hit(job, key)

    def resolve(self, job: DependencyJob) -> TaskState:
        job.resolved = self.resolver.resolve(job.dep)
        key = self.key_for(job.dep.name, job.resolved.version)
        job.key = key
        if self.cache.exists(key):
            return self._hit(job, key)
        return TaskState.FETCHING

    def fetch(self, job: DependencyJob) -> TaskState:
        if job.key is None:
            raise ValueError(f"{job.dep.name} 尚未解析版本，无法拉取")
        name, version = job.key.name, job.key.version
        scratch = Path(tempfile.mkdtemp(
            prefix=SCRATCH_PREFIX,
            dir=str(self.scratch_root) if self.scratch_root else None,
        ))
        job.scratch_dir = scratch

        logger.info("拉取 %s@%s -> %s", name, version, scratch)
        try:
            self.package_resolver.fetch_and_build(name, version, scratch)
        except FetchError as e:
            e.stage = e.stage or "fetch"
            e.dependency = e.dependency or name
            raise
        return TaskState.PUBLISHING

    def publish(self, job: DependencyJob) -> TaskState:
        if job.key is None or job.scratch_dir is None:
            raise ValueError(f"{job.dep.name} 尚未拉取，无法发布")
        key = job.key
        target = self.cache.path_for(key)
        payload = job.scratch_dir / PAYLOAD_DIR

        with self.guard.hold(key):
            # 拉取期间可能已有并发任务写入同一个键
            if self.cache.exists(key):
                logger.info("缓存已被其他任务写入，放弃本次产物: %s", key)
                job.cache_path = target
                job.outcome = "abandoned"
                return TaskState.DONE

            if not payload.exists():
                raise PublishError(
                    f"拉取产物缺失: {payload}",
                    stage="publish", dependency=key.name,
                )

            logger.info("写入缓存 %s: %s -> %s", key, payload, target)
            created = not target.exists()
            try:
                target.mkdir(parents=True, exist_ok=True)
                method = self.materializer.publish(payload, target)
            except OSError as e:
                if created:
                    _discard_partial(target)
                raise PublishError(
                    f"创建缓存目录失败: {target}: {e}",
                    stage="publish", dependency=key.name,
                ) from e
            except PublishError as e:
                # 缓存中不保留不完整的条目
                if created:
                    _discard_partial(target)
                e.stage = "publish"
                e.dependency = e.dependency or key.name
                raise

        logger.debug("%s 发布方式: %s", key, method)
        job.cache_path = target
        job.outcome = "fetched"
        return TaskState.DONE

    def _hit(self, job: DependencyJob, key: CacheKey) -> TaskState:
        job.key = key
        job.cache_path = self.cache.path_for(key)
        job.outcome = "cached"
        logger.info("缓存命中: %s", key)
        return TaskState.DONE

    # ------------------------------------------------------------------
    # 驱动
    # ------------------------------------------------------------------

    def advance(self, job: DependencyJob) -> TaskState:
        """执行当前状态对应的一步，更新并返回新状态"""
        step = self._transitions.get(job.state)
        if step is None:
            raise ValueError(f"终止状态无法继续推进: {job.state.value}")
        try:
            job.state = step(job)
        except FastInstallError as e:
            job.state = TaskState.FAILED
            job.error = e
            raise
        return job.state

    def process(self, dep: Dependency) -> DependencyJob:
        """完整处理单个依赖，失败时抛出该依赖的首个异常"""
        job = DependencyJob(dep=dep)
        while job.state is not TaskState.DONE:
            self.advance(job)
        return job

    def run_all(self, deps: Sequence[Dependency], max_tasks: int) -> FetchReport:
        """并发处理全部依赖；任一依赖失败则原样抛出首个异常"""
        logger.info("开始处理 %d 个依赖 (并发 %d)", len(deps), max_tasks)
        stage = run_bounded(
            "fetch", list(enumerate(deps)),
            lambda pair: self.process(pair[1]), max_tasks,
        )
        stage.raise_for_error()
        # 按声明顺序整理，便于结果映射的 "先声明者优先" 规则
        done = sorted((o for o in stage.outcomes if o.ok), key=lambda o: o.item[0])
        report = FetchReport(jobs=[o.value for o in done])
        logger.info(
            "拉取完成: 命中 %(cached)d, 新拉取 %(fetched)d, 放弃 %(abandoned)d",
            report.stats,
        )
        return report


def _discard_partial(target: Path) -> None:
    """删除发布失败留下的缓存目录；删除失败只记录，不掩盖原始异常"""
    if not target.exists():
        return
    try:
        shutil.rmtree(target)
    except OSError as e:
        logger.error("无法删除不完整的缓存项 %s: %s", target, e)
    else:
        logger.warning("已删除不完整的缓存项: %s", target)
