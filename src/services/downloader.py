# src/services/downloader.py

import os
import json
import requests
from dataclasses import dataclass
from typing import List, Literal, Optional

from errors import DRMExtractionError, DecodeProcessError
from models import Media
from services.decryptor import Decryptor

# 定义一个类型来表示下载结果，使代码更清晰
DownloadResult = Literal["SUCCESS", "SKIPPED", "FAILED"]

CHUNK_SIZE = 8192


@dataclass
class AcquireResult:
    media: Media
    status: DownloadResult
    error: Optional[str] = None


class Downloader:
    """负责下载单个媒体（直链或 DRM），写入完成标记，并管理失败的下载。"""

    def __init__(self, output_dir: str, decryptor: Optional[Decryptor] = None,
                 session: Optional[requests.Session] = None, user_agent: str = ""):
        self.output_dir = output_dir
        self.decryptor = decryptor
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers.update({"User-Agent": user_agent})

    def author_folder(self, author_id: int) -> str:
        return os.path.join(self.output_dir, str(author_id))

    def media_path(self, media: Media) -> str:
        return os.path.join(self.author_folder(media.author_id), f"{media.id}.{media.extension}")

    def marker_path(self, media: Media) -> str:
        return os.path.join(self.author_folder(media.author_id), f"{media.id}.done")

    def is_done(self, media: Media) -> bool:
        return os.path.exists(self.marker_path(media))

    def _write_marker(self, media: Media):
        with open(self.marker_path(media), 'w', encoding='utf-8'):
            pass

    def _stream_plain(self, media: Media, filepath: str):
        """把响应体流式写入文件。写入 0 字节视为失败，不留下完成标记。"""
        written = 0
        with self.session.get(media.plain_url, stream=True, timeout=60) as response:
            response.raise_for_status()
            with open(filepath, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        if written == 0:
            os.remove(filepath)
            raise OSError(f"媒体 {media.id} 的响应为空")

    def acquire(self, media: Media) -> AcquireResult:
        """
        下载单个媒体。已有完成标记时直接跳过。
        单个媒体的失败只体现在返回值中，不会影响其他媒体。
        :return: status 为 "SUCCESS"、"SKIPPED" 或 "FAILED" 的 AcquireResult。
        """
        if self.is_done(media):
            return AcquireResult(media, "SKIPPED")

        os.makedirs(self.author_folder(media.author_id), exist_ok=True)
        filepath = self.media_path(media)

        try:
            if media.plain_url:
                self._stream_plain(media, filepath)
            elif media.is_protected:
                if self.decryptor is None:
                    return AcquireResult(media, "FAILED", "未配置 Widevine 凭据，无法解密")
                self.decryptor.decrypt(media, filepath)
            else:
                return AcquireResult(media, "FAILED", "媒体不可用（未解锁或没有下载地址）")
        except (DRMExtractionError, DecodeProcessError, requests.exceptions.RequestException, OSError) as e:
            print(f"  - 下载媒体 {media.id} 失败: {e}")
            return AcquireResult(media, "FAILED", str(e))

        self._write_marker(media)
        return AcquireResult(media, "SUCCESS")

    def _get_undownloaded_filepath(self, folder: str) -> str:
        """获取undownloaded.json文件的完整路径。"""
        return os.path.join(folder, 'undownloaded.json')

    def save_undownloaded_list(self, folder: str, failures: List[AcquireResult]):
        """将本次失败的媒体信息保存到 undownloaded.json；没有失败时删除该文件。"""
        undownloaded_path = self._get_undownloaded_filepath(folder)

        unique_items = []
        seen_ids = set()
        for result in failures:
            if result.media.id in seen_ids:
                continue
            seen_ids.add(result.media.id)
            item = result.media.to_dict()
            item["error"] = result.error
            unique_items.append(item)

        if not unique_items:
            if os.path.exists(undownloaded_path):
                try:
                    os.remove(undownloaded_path)
                    print("\n  - 所有媒体均已成功下载，已删除 'undownloaded.json'。")
                except OSError as e:
                    print(f"  - 警告：删除 'undownloaded.json' 文件失败: {e}")
            return

        print(f"\n  - 将 {len(unique_items)} 个未下载的媒体信息保存到 'undownloaded.json'...")
        try:
            os.makedirs(folder, exist_ok=True)
            with open(undownloaded_path, 'w', encoding='utf-8') as f:
                json.dump(unique_items, f, indent=4, ensure_ascii=False)
        except IOError as e:
            print(f"  - 错误：写入 'undownloaded.json' 文件失败: {e}")
