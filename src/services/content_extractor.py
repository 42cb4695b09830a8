# src/services/content_extractor.py

from typing import Any, Dict, Iterable, List, Optional

from models import Media, MediaType, Post, Protection


class ContentExtractor:
    """负责把 API 返回的原始动态数据转换为动态对象与扁平的媒体下载列表。纯数据转换，不访问网络或磁盘。"""

    def _plain_url(self, raw_media: Dict[str, Any]) -> Optional[str]:
        """直链优先取 'full'，新版接口则位于 files.full.url。"""
        if raw_media.get("full"):
            return raw_media["full"]
        full = (raw_media.get("files") or {}).get("full") or {}
        return full.get("url") or None

    def _protection(self, raw_media: Dict[str, Any]) -> Optional[Protection]:
        drm = (raw_media.get("files") or {}).get("drm") or {}
        manifest_url = (drm.get("manifest") or {}).get("dash")
        signature = (drm.get("signature") or {}).get("dash") or {}
        policy = signature.get("CloudFront-Policy")
        if not (manifest_url and policy):
            return None
        return Protection(
            manifest_url=manifest_url,
            policy_token=policy,
            signature=signature.get("CloudFront-Signature", ""),
            key_pair_id=signature.get("CloudFront-Key-Pair-Id", ""),
        )

    def parse_media(self, raw_media: Dict[str, Any], post_id: int, author_id: int) -> Media:
        plain_url = self._plain_url(raw_media)
        # 有直链时不走 DRM 流程
        protection = None if plain_url else self._protection(raw_media)
        return Media(
            id=raw_media["id"],
            type=MediaType.from_api(raw_media.get("type")),
            author_id=author_id,
            post_id=post_id,
            plain_url=plain_url,
            protection=protection,
        )

    def parse_post(self, raw_post: Dict[str, Any]) -> Post:
        post_id = raw_post["id"]
        author_id = raw_post["author"]["id"]
        media = [self.parse_media(m, post_id, author_id) for m in raw_post.get("media") or []]
        return Post(id=post_id, author_id=author_id, media=media)

    def parse_posts(self, raw_posts: Iterable[Dict[str, Any]]) -> List[Post]:
        return [self.parse_post(p) for p in raw_posts]

    def extract_media(self, posts: Iterable[Post]) -> List[Media]:
        """把所有动态中的媒体展开为一个列表，每一项都带有所属动态与作者的 ID。"""
        return [media for post in posts for media in post.media]
