"""fastinstall - 带缓存的 npm 依赖并行安装工具"""

__version__ = "0.1.0"
