"""统一异常体系

所有业务异常继承 FastInstallError，按流水线阶段划分子类。
每个阶段失败即终止（fail-fast），首个异常原样抛给调用方，不做聚合包装。
CLI 层据 code 输出友好提示。
"""

from __future__ import annotations


class FastInstallError(Exception):
    """安装流水线基础异常"""

    code: str = "UNKNOWN"

    def __init__(
        self, message: str, *, stage: str = "", dependency: str = "",
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.dependency = dependency


class ConfigError(FastInstallError):
    """工作目录无效或配置内容无效"""

    code = "CONFIG_ERROR"


class ManifestError(ConfigError):
    """未找到 package.json 或内容无法解析"""

    code = "MANIFEST_ERROR"


class ResolutionError(FastInstallError):
    """版本查询失败（包不存在、仓库不可达等）"""

    code = "RESOLUTION_ERROR"


class FetchError(FastInstallError):
    """外部拉取/构建失败"""

    code = "FETCH_ERROR"


class PublishError(FastInstallError):
    """移动和回退复制均失败，缓存项无法发布"""

    code = "PUBLISH_ERROR"


class CopyError(FastInstallError):
    """递归复制失败（源和目标都不存在，或复制过程出错）"""

    code = "COPY_ERROR"


class CleanupError(FastInstallError):
    """临时目录清理失败"""

    code = "CLEANUP_ERROR"
