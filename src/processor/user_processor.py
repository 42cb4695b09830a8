# src/processor/user_processor.py

import os
import requests
from typing import Dict

from api import OnlyFansAPI
from errors import APIError
from models import Subscription
from services.content_extractor import ContentExtractor
from services.metadata_saver import MetadataSaver
from .download_scheduler import DownloadScheduler


class UserProcessor:
    """处理单个订阅的完整流程：聚合动态 -> 保存元数据 -> 展开媒体 -> 并发下载。"""

    def __init__(self, api: OnlyFansAPI, extractor: ContentExtractor, saver: MetadataSaver, scheduler: DownloadScheduler):
        self.api = api
        self.extractor = extractor
        self.saver = saver
        self.scheduler = scheduler

    def process(self, subscription: Subscription) -> Dict:
        print(f"\n>>>>>>>>> 开始处理用户: {subscription.username} ({subscription.id}) <<<<<<<<<")

        stats = {
            "processed_posts": 0,
            "downloaded_media": 0,
            "skipped_media": 0,
            "failed_media": 0,
            "folder_name": subscription.username,
        }

        downloader = self.scheduler.downloader
        user_folder = downloader.author_folder(subscription.id)
        os.makedirs(user_folder, exist_ok=True)

        print("\n[步骤1] 正在获取所有动态...")
        try:
            raw_posts = self.api.get_all_posts(subscription.id)
        except (APIError, requests.exceptions.RequestException) as e:
            print(f"  - 错误：获取动态失败，跳过此用户: {e}")
            return stats

        self.saver.save_posts(user_folder, raw_posts)

        posts = self.extractor.parse_posts(raw_posts)
        media_list = self.extractor.extract_media(posts)
        stats["processed_posts"] = len(posts)
        print(f"找到了 {len(posts)} 条动态，共 {len(media_list)} 个媒体。")

        print(f"\n[步骤2] 开始下载用户 {subscription.username} 的媒体...")
        report = self.scheduler.run(media_list, desc=f"下载 {subscription.username}")

        if report.skipped:
            print(f"  - 跳过 {report.skipped} 个已完成的媒体。")

        downloader.save_undownloaded_list(user_folder, report.failures)

        stats["downloaded_media"] = report.downloaded
        stats["skipped_media"] = report.skipped
        stats["failed_media"] = len(report.failures)
        return stats
