# src/processor/download_scheduler.py

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Sequence

from tqdm import tqdm

from api import MAX_CONCURRENCY
from models import Media
from services.downloader import AcquireResult, Downloader


@dataclass
class ScheduleReport:
    downloaded: int = 0
    skipped: int = 0
    failures: List[AcquireResult] = field(default_factory=list)

    @property
    def acquired(self) -> int:
        """已完成的媒体数（包括本次下载和之前已完成而跳过的）。"""
        return self.downloaded + self.skipped


class DownloadScheduler:
    """在最多 MAX_CONCURRENCY 个线程中并发下载所有媒体，并统计进度。"""

    def __init__(self, downloader: Downloader):
        self.downloader = downloader
        self.completed = 0
        self._lock = threading.Lock()
        self._bar = None

    def _advance(self):
        with self._lock:
            self.completed += 1
            if self._bar is not None:
                self._bar.update(1)

    def _run_one(self, media: Media) -> AcquireResult:
        """单个媒体的任何异常都只记为该媒体失败，不会中断同批次的其他下载。"""
        try:
            return self.downloader.acquire(media)
        except Exception as e:
            print(f"  - 下载媒体 {media.id} 时发生意外错误: {type(e).__name__}: {e}")
            return AcquireResult(media, "FAILED", f"{type(e).__name__}: {e}")
        finally:
            self._advance()

    def run(self, media_list: Sequence[Media], desc: str = "下载媒体") -> ScheduleReport:
        """
        下载所有媒体并返回汇总结果。
        已有完成标记的媒体在提交前就被跳过，不会发出任何网络请求。
        """
        report = ScheduleReport()
        self.completed = 0

        with tqdm(total=len(media_list), desc=desc, unit=" 个") as bar:
            self._bar = bar
            try:
                pending = []
                for media in media_list:
                    if self.downloader.is_done(media):
                        report.skipped += 1
                        self._advance()
                    else:
                        pending.append(media)

                with ThreadPoolExecutor(max_workers=MAX_CONCURRENCY) as pool:
                    futures = [pool.submit(self._run_one, media) for media in pending]
                    for future in as_completed(futures):
                        result = future.result()
                        if result.status == "SUCCESS":
                            report.downloaded += 1
                        elif result.status == "SKIPPED":
                            report.skipped += 1
                        else:
                            report.failures.append(result)
            finally:
                self._bar = None

        return report
