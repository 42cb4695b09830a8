# src/signer.py

import hashlib
import time
from typing import Dict, Optional

from errors import ConfigError
from models import Credentials, DynamicRuleSet


class RequestSigner:
    """根据动态规则为每个 API 请求计算签名请求头。"""

    def __init__(self, credentials: Credentials, rules: Optional[DynamicRuleSet]):
        if rules is None:
            raise ConfigError("缺少动态签名规则，无法对请求签名。")
        self.credentials = credentials
        self.rules = rules

    def checksum(self, digest_hex: str) -> int:
        """对十六进制摘要中指定位置的字节求和，再加上常量。"""
        digest_bytes = digest_hex.encode("ascii")
        total = sum(digest_bytes[index] for index in self.rules.checksum_indexes)
        return total + self.rules.checksum_constant

    def sign(self, path: str, timestamp: Optional[float] = None) -> Dict[str, str]:
        """
        生成签名请求头。
        :param path: 以 /api2/v2 开头、包含查询字符串的请求路径。
        :param timestamp: Unix 时间戳（秒），为空时取当前时间。
        """
        unixtime = int(time.time() if timestamp is None else timestamp)
        message = "\n".join([
            self.rules.static_param,
            str(unixtime),
            path,
            self.credentials.identity_id,
        ])
        digest_hex = hashlib.sha1(message.encode("utf-8")).hexdigest()
        checksum = self.checksum(digest_hex)

        return {
            "Accept": "application/json, text/plain, */*",
            "Accept-Encoding": "gzip, deflate",
            "User-Agent": self.credentials.user_agent,
            "x-bc": self.credentials.client_token,
            "user-id": self.credentials.identity_id,
            "Cookie": f"auth_id={self.credentials.identity_id}; sess={self.credentials.session_token}",
            "sign": self.rules.signature_template.format(digest_hex, abs(checksum)),
            "time": str(unixtime),
        }
