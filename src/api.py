# src/api.py

import math
import requests
from concurrent.futures import ThreadPoolExecutor, as_completed
from urllib.parse import urlencode
from typing import List, Dict, Any, Optional

from errors import APIError, AuthError
from models import Credentials, Subscription
from signer import RequestSigner

API_URL = "https://onlyfans.com/api2/v2"
API_PATH = "/api2/v2"
PAGE_SIZE = 50
REQUEST_TIMEOUT = 30
# 分页请求与媒体下载各自同时进行的最大数量，固定不可配置
MAX_CONCURRENCY = 10


class OnlyFansAPI:
    """对签名 API 的封装：订阅列表、分页动态、DRM 清单与许可证。"""

    def __init__(self, credentials: Credentials, signer: RequestSigner,
                 session: Optional[requests.Session] = None):
        """初始化 API 封装器。session 在所有工作线程之间共享。"""
        self.credentials = credentials
        self.signer = signer
        self.session = session or requests.Session()

    def _signed_get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """发送签名 GET 请求并解析 JSON。签名路径必须与实际请求的查询字符串完全一致。"""
        link = endpoint
        if params:
            link += "?" + urlencode(params)
        headers = self.signer.sign(API_PATH + link)
        response = self.session.get(API_URL + link, headers=headers, timeout=REQUEST_TIMEOUT)
        return response.json()

    def get_active_subscriptions(self) -> List[Subscription]:
        """获取所有有效订阅。响应携带 error 对象时抛出 AuthError。"""
        data = self._signed_get("/subscriptions/subscribes", {
            "limit": PAGE_SIZE,
            "order": "publish_date_asc",
            "type": "active",
        })
        if isinstance(data, dict) and data.get("error"):
            raise AuthError(data["error"].get("message", "未知错误"))
        if not isinstance(data, list):
            raise AuthError(f"订阅列表响应格式异常: {type(data).__name__}")
        return [Subscription.from_dict(item) for item in data]

    def fetch_posts(self, user_id: int, params: Dict[str, Any]) -> Any:
        data = self._signed_get(f"/users/{user_id}/posts", params)
        if isinstance(data, dict) and data.get("error"):
            raise APIError(f"获取用户 {user_id} 的动态失败: {data['error'].get('message', '未知错误')}")
        return data

    def get_posts_count(self, user_id: int) -> int:
        """只请求一条动态并开启 counters，以获取动态总数。"""
        data = self.fetch_posts(user_id, {
            "limit": 1,
            "order": "publish_date_desc",
            "format": "infinite",
            "counters": 1,
        })
        try:
            return int(data["counters"]["postsCount"])
        except (KeyError, TypeError, ValueError):
            raise APIError(f"无法从响应中获取用户 {user_id} 的动态总数。")

    def fetch_page(self, user_id: int, offset: int) -> List[Dict[str, Any]]:
        page = self.fetch_posts(user_id, {
            "limit": PAGE_SIZE,
            "offset": offset,
            "order": "publish_date_desc",
            "skip_users": "all",
            "counters": 0,
        })
        if isinstance(page, dict):
            # format=infinite 形式的响应
            page = page.get("list", [])
        return page

    def get_all_posts(self, user_id: int) -> List[Dict[str, Any]]:
        """
        先查询动态总数，再按偏移量并发获取所有分页并合并结果。
        返回结果的顺序不保证与偏移量顺序一致。
        """
        total = self.get_posts_count(user_id)
        offsets = [i * PAGE_SIZE for i in range(math.ceil(total / PAGE_SIZE))]
        if not offsets:
            return []

        print(f"  - 共 {total} 条动态，分 {len(offsets)} 页获取...")
        posts: List[Dict[str, Any]] = []
        with ThreadPoolExecutor(max_workers=MAX_CONCURRENCY) as pool:
            futures = [pool.submit(self.fetch_page, user_id, offset) for offset in offsets]
            for future in as_completed(futures):
                posts.extend(future.result())
        return posts

    def fetch_manifest(self, manifest_url: str, cookie: str) -> str:
        """使用 CloudFront 策略 cookie 获取 DASH 清单。"""
        response = self.session.get(manifest_url, headers={
            "User-Agent": self.credentials.user_agent,
            "Cookie": cookie,
        }, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.text

    def request_license(self, media_id: int, post_id: int, challenge: bytes) -> bytes:
        """向许可证端点发送签名 POST，返回二进制许可证。"""
        link = f"/users/media/{media_id}/drm/post/{post_id}?" + urlencode({"type": "widevine"})
        headers = self.signer.sign(API_PATH + link)
        response = self.session.post(API_URL + link, data=challenge, headers=headers, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.content
