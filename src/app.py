# src/app.py

import os
import sys
import time
import datetime
import json
import re
import threading
from dataclasses import dataclass, asdict
from typing import List, Optional

from pywidevine.cdm import Cdm

from api import OnlyFansAPI
from config import Config
from models import Credentials, DynamicRuleSet, Subscription
from processor.processor import PostProcessorFacade
from services.decryptor import Decryptor
from signer import RequestSigner


class Tee:
    """
    将输出（如 sys.stdout）同时写入控制台和日志文件。
    写入日志文件时移除 ANSI 颜色代码；多个下载线程同时打印时用锁保证每次写入完整。
    """
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def __init__(self, *files):
        self.files = files
        self._lock = threading.Lock()

    def write(self, obj):
        plain_text = self.ansi_escape.sub('', obj)
        with self._lock:
            for f in self.files:
                if hasattr(f, 'isatty') and f.isatty():
                    f.write(obj)
                else:
                    f.write(plain_text)
                f.flush()

    def flush(self):
        with self._lock:
            for f in self.files:
                f.flush()


@dataclass
class LogEntry:
    """描述单次订阅处理任务的日志记录。"""
    user_id: int
    user_name: str
    timestamp: str
    duration: str
    duration_seconds: float
    processed_posts: int
    downloaded_media: int
    skipped_media: int
    failed_media: int


class Application:
    """主应用程序类，负责协调整个流程。"""

    def __init__(self, config: Config, credentials: Credentials, rules: DynamicRuleSet,
                 cdm: Optional[Cdm] = None, only_user: Optional[str] = None,
                 log_dir: Optional[str] = None):
        self.config = config
        self.only_user = only_user
        os.makedirs(self.config.OUTPUT_DIR_PATH, exist_ok=True)

        signer = RequestSigner(credentials, rules)
        self.api = OnlyFansAPI(credentials, signer)
        decryptor = Decryptor(self.api, cdm) if cdm is not None else None
        self.processor = PostProcessorFacade(self.config, self.api, decryptor)

        if log_dir is None:
            project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
            log_dir = os.path.join(project_root, 'log')
        self.log_dir = log_dir
        os.makedirs(self.log_dir, exist_ok=True)

    def _write_log(self, log_file_path: str, data: dict):
        records = []
        if os.path.exists(log_file_path):
            try:
                with open(log_file_path, 'r', encoding='utf-8') as f:
                    records = json.load(f)
                if not isinstance(records, list):
                    records = []
            except json.JSONDecodeError:
                records = []

        records.append(data)

        with open(log_file_path, 'w', encoding='utf-8') as f:
            json.dump(records, f, ensure_ascii=False, indent=4)

    def _select(self, subscriptions: List[Subscription]) -> List[Subscription]:
        if not self.only_user:
            return subscriptions
        selected = [s for s in subscriptions if self.only_user in (s.username, str(s.id))]
        if not selected:
            print(f"警告：在有效订阅中没有找到 '{self.only_user}'。")
        return selected

    def run(self):
        """
        启动下载器的主入口点。
        获取订阅列表时的 AuthError 会直接向上抛出，由 main 负责提示并退出。
        """
        timestamp = datetime.datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
        console_log_path = os.path.join(self.log_dir, f"run_log_{timestamp}.log")

        original_stdout = sys.stdout
        log_file = open(console_log_path, 'w', encoding='utf-8')

        sys.stdout = Tee(original_stdout, log_file)

        summary_log_path = os.path.join(self.log_dir, "processing_time_log.json")

        try:
            print(f"程序启动于: {timestamp}")
            print("-" * 40)

            print("正在获取有效订阅...")
            subscriptions = self._select(self.api.get_active_subscriptions())
            print(f"找到 {len(subscriptions)} 个订阅。")

            for subscription in subscriptions:
                start_time = time.perf_counter()

                stats = self.processor.process_user(subscription)

                duration = time.perf_counter() - start_time
                minutes, seconds = divmod(duration, 60)
                hours, minutes = divmod(minutes, 60)
                time_str = f"{int(hours)}h {int(minutes)}m {seconds:.2f}s"

                console_message = (
                    f"\n>>>>>>>>> 完成用户 '{subscription.username}' 的处理，总耗时: {time_str} <<<<<<<<<\n"
                    f"  - 本次处理动态数: {stats['processed_posts']}\n"
                    f"  - 成功下载媒体数: {stats['downloaded_media']}\n"
                    f"  - 跳过已完成媒体数: {stats['skipped_media']}\n"
                    f"  - 下载失败媒体数: {stats['failed_media']}\n"
                    f">>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>>"
                )
                print(console_message)

                log_entry_obj = LogEntry(
                    user_id=subscription.id,
                    user_name=subscription.username,
                    timestamp=datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
                    duration=time_str,
                    duration_seconds=round(duration, 2),
                    processed_posts=stats['processed_posts'],
                    downloaded_media=stats['downloaded_media'],
                    skipped_media=stats['skipped_media'],
                    failed_media=stats['failed_media'],
                )

                self._write_log(summary_log_path, asdict(log_entry_obj))

            print(f"\n所有任务已完成！")
            print(f"详细运行日志已保存到: {os.path.abspath(console_log_path)}")
            print(f"处理摘要日志已保存到: {os.path.abspath(summary_log_path)}")

        except KeyboardInterrupt:
            print("\n\n程序被用户中断。正在退出...")
        finally:
            sys.stdout = original_stdout
            log_file.close()
