# src/services/decryptor.py

import os
import subprocess
from typing import List, Optional

from google.protobuf.message import DecodeError
from pywidevine.cdm import Cdm
from pywidevine.device import Device, DeviceTypes
from pywidevine.exceptions import PyWidevineException
from pywidevine.pssh import PSSH

from api import OnlyFansAPI
from errors import ConfigError, DRMExtractionError, DecodeProcessError
from models import ContentKey, Media, WidevineCredentials
from services.pssh_parser import PsshBox, extract_widevine_pssh


def create_cdm(credentials: WidevineCredentials) -> Cdm:
    """
    用私钥和客户端标识构建 CDM。每个进程只需创建一次。
    凭据文件内容无效时抛出 ConfigError，与其他凭据问题走同一条提示并退出的路径。
    """
    try:
        device = Device(
            type_=DeviceTypes.ANDROID,
            security_level=3,
            flags=None,
            private_key=credentials.private_key,
            client_id=credentials.client_id,
        )
        return Cdm.from_device(device)
    except (ValueError, TypeError, DecodeError, PyWidevineException) as e:
        raise ConfigError(f"Widevine 凭据无效，请检查私钥与 client_id 文件: {e}") from e


class Decryptor:
    """
    受保护媒体的解密流程：
    获取清单 -> 提取 PSSH -> 许可证交换 -> 取得内容密钥 -> 调用 ffmpeg 解密并封装。
    """

    def __init__(self, api: OnlyFansAPI, cdm: Cdm, ffmpeg: str = "ffmpeg"):
        self.api = api
        self.cdm = cdm
        self.ffmpeg = ffmpeg

    def get_content_keys(self, media: Media, box: PsshBox) -> List[ContentKey]:
        """
        打开一个许可证会话，完成一次许可证交换，并返回所有内容密钥。
        会话数已满、PSSH 无效或许可证无法解析都转换为 DRMExtractionError。
        """
        session_id: Optional[bytes] = None
        try:
            session_id = self.cdm.open()
            challenge = self.cdm.get_license_challenge(session_id, PSSH(box.raw))
            license_message = self.api.request_license(media.id, media.post_id, challenge)
            self.cdm.parse_license(session_id, license_message)
            keys = [
                ContentKey(key_id=key.kid.hex, key_value=key.key.hex())
                for key in self.cdm.get_keys(session_id, "CONTENT")
            ]
        except (PyWidevineException, ValueError) as e:
            raise DRMExtractionError(f"许可证交换失败: {type(e).__name__}: {e}") from e
        finally:
            if session_id is not None:
                self.cdm.close(session_id)

        if not keys:
            raise DRMExtractionError(f"媒体 {media.id} 的许可证中没有内容密钥。")
        return keys

    def build_command(self, manifest_url: str, cookie: str, user_agent: str,
                      key: ContentKey, output_path: str) -> List[str]:
        return [
            self.ffmpeg, "-y", "-loglevel", "error",
            "-cenc_decryption_key", key.key_value,
            "-user_agent", user_agent,
            "-headers", f"Cookie: {cookie}\r\n",
            "-i", manifest_url,
            "-codec", "copy",
            output_path,
        ]

    def decrypt(self, media: Media, output_path: str):
        """
        解密单个受保护媒体并写入 output_path。
        完成标记由调用方在本方法成功返回后写入。
        """
        protection = media.protection
        if protection is None:
            raise DRMExtractionError(f"媒体 {media.id} 没有 DRM 信息。")

        cookie = protection.cookie_header()
        manifest_text = self.api.fetch_manifest(protection.manifest_url, cookie)
        box = extract_widevine_pssh(manifest_text)
        keys = self.get_content_keys(media, box)

        command = self.build_command(protection.manifest_url, cookie,
                                     self.api.credentials.user_agent, keys[0], output_path)
        # 阻塞调用，会一直占用当前工作线程直到解码结束
        result = subprocess.run(command, capture_output=True, text=True)
        if result.returncode != 0:
            stderr_tail = (result.stderr or "").strip()[-300:]
            raise DecodeProcessError(f"ffmpeg 退出码 {result.returncode}: {stderr_tail}", result.returncode)

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise DecodeProcessError(f"ffmpeg 未生成有效文件: {output_path}", result.returncode)
