# src/processor/processor.py

from typing import Dict, Optional
from api import OnlyFansAPI
from config import Config
from models import Subscription
from services.content_extractor import ContentExtractor
from services.decryptor import Decryptor
from services.downloader import Downloader
from services.metadata_saver import MetadataSaver
from .download_scheduler import DownloadScheduler
from .user_processor import UserProcessor


class PostProcessorFacade:
    """
    一个简单的外观类，用于封装和协调所有子系统。
    它负责创建所有对象，并提供一个单一的入口点。
    """

    def __init__(self, config: Config, api: OnlyFansAPI, decryptor: Optional[Decryptor] = None):
        downloader = Downloader(config.OUTPUT_DIR_PATH, decryptor, user_agent=api.credentials.user_agent)
        scheduler = DownloadScheduler(downloader)
        extractor = ContentExtractor()
        saver = MetadataSaver()

        self.user_processor = UserProcessor(api, extractor, saver, scheduler)

    def process_user(self, subscription: Subscription) -> Dict:
        """
        启动处理单个订阅的公共入口点。
        """
        return self.user_processor.process(subscription)
