# src/models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from errors import ConfigError

# 十六进制 SHA-1 摘要的长度，checksum_indexes 中的下标必须小于它
DIGEST_HEX_LENGTH = 40


@dataclass(frozen=True)
class Credentials:
    """auth.json 中的四项认证信息，加载后在整个进程生命周期内不变。"""
    identity_id: str
    user_agent: str
    session_token: str
    client_token: str


@dataclass(frozen=True)
class DynamicRuleSet:
    """请求签名所需的动态规则。"""
    static_param: str
    checksum_indexes: Tuple[int, ...]
    checksum_constant: int
    signature_template: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DynamicRuleSet":
        """从动态规则 JSON 构建规则集，并校验字段类型与取值。"""
        if not isinstance(data, dict):
            raise ConfigError("动态规则格式错误：应为 JSON 对象。")

        for key in ("static_param", "checksum_indexes", "checksum_constant", "format"):
            if key not in data:
                raise ConfigError(f"动态规则缺少字段: '{key}'")

        static_param = data["static_param"]
        indexes = data["checksum_indexes"]
        constant = data["checksum_constant"]
        template = data["format"]

        if not isinstance(static_param, str) or not static_param:
            raise ConfigError("动态规则错误: 'static_param' 必须是非空字符串")
        if not isinstance(indexes, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in indexes):
            raise ConfigError("动态规则错误: 'checksum_indexes' 必须是整数列表")
        for index in indexes:
            if not 0 <= index < DIGEST_HEX_LENGTH:
                raise ConfigError(f"动态规则错误: checksum 下标 {index} 超出摘要范围 (0-{DIGEST_HEX_LENGTH - 1})")
        if not isinstance(constant, int) or isinstance(constant, bool):
            raise ConfigError("动态规则错误: 'checksum_constant' 必须是整数")
        if not isinstance(template, str) or "{}" not in template:
            raise ConfigError("动态规则错误: 'format' 必须是包含 '{}' 占位符的字符串")
        try:
            template.format("0" * DIGEST_HEX_LENGTH, 0)
        except (IndexError, KeyError, ValueError) as e:
            raise ConfigError(f"动态规则错误: 'format' 模板无效: {e}")

        return cls(static_param, tuple(indexes), constant, template)


@dataclass(frozen=True)
class WidevineCredentials:
    """CDM 私钥与客户端标识，启动时加载一次。"""
    private_key: bytes
    client_id: bytes


@dataclass(frozen=True)
class Subscription:
    id: int
    username: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subscription":
        return cls(id=data["id"], username=data.get("username") or str(data["id"]))


class MediaType(Enum):
    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"

    @classmethod
    def from_api(cls, value: Optional[str]) -> "MediaType":
        """未知类型 (如 gif) 一律按视频处理。"""
        try:
            return cls(value)
        except ValueError:
            return cls.VIDEO


_EXTENSIONS = {
    MediaType.PHOTO: "jpg",
    MediaType.AUDIO: "mp3",
    MediaType.VIDEO: "mp4",
}


def media_extension(media_type: MediaType) -> str:
    return _EXTENSIONS[media_type]


@dataclass(frozen=True)
class Protection:
    """受 DRM 保护媒体的清单地址与 CloudFront 签名 cookie。"""
    manifest_url: str
    policy_token: str
    signature: str = ""
    key_pair_id: str = ""

    def cookie_header(self) -> str:
        parts = [f"CloudFront-Policy={self.policy_token}"]
        if self.signature:
            parts.append(f"CloudFront-Signature={self.signature}")
        if self.key_pair_id:
            parts.append(f"CloudFront-Key-Pair-Id={self.key_pair_id}")
        return "; ".join(parts) + ";"


@dataclass(frozen=True)
class Media:
    """
    单个媒体的下载描述。
    plain_url 与 protection 至多存在一个；两者都为空表示媒体不可用（未解锁）。
    """
    id: int
    type: MediaType
    author_id: int
    post_id: int
    plain_url: Optional[str] = None
    protection: Optional[Protection] = None

    @property
    def extension(self) -> str:
        return media_extension(self.type)

    @property
    def is_protected(self) -> bool:
        return self.plain_url is None and self.protection is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "author_id": self.author_id,
            "post_id": self.post_id,
            "plain_url": self.plain_url,
            "manifest_url": self.protection.manifest_url if self.protection else None,
        }


@dataclass
class Post:
    id: int
    author_id: int
    media: List[Media] = field(default_factory=list)


@dataclass(frozen=True)
class ContentKey:
    key_id: str
    key_value: str
