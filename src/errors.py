# src/errors.py


class DownloaderError(Exception):
    """所有下载器异常的基类。"""


class ConfigError(DownloaderError):
    """凭据或配置缺失/不完整。在发出任何网络请求之前终止程序。"""

    def __init__(self, message: str, created_template: bool = False):
        super().__init__(message)
        self.created_template = created_template


class APIError(DownloaderError):
    """API 响应中携带了 error 对象。"""


class AuthError(APIError):
    """获取订阅列表失败，通常是认证信息错误。"""


class DRMExtractionError(DownloaderError):
    """清单中找不到 Widevine 的 PSSH 数据，或许可证中没有内容密钥。"""


class DecodeProcessError(DownloaderError):
    """外部解密/封装工具 (ffmpeg) 执行失败。"""

    def __init__(self, message: str, returncode: int = -1):
        super().__init__(message)
        self.returncode = returncode
