# src/services/metadata_saver.py

import os
import json
from typing import Any, Dict, List


class MetadataSaver:
    """负责保存原始元数据文件。"""

    def save_posts(self, user_folder: str, posts: List[Dict[str, Any]]) -> str:
        """把聚合后的原始动态列表写入 posts.json，每次运行覆盖一次。"""
        os.makedirs(user_folder, exist_ok=True)
        filepath = os.path.join(user_folder, 'posts.json')

        print(f"  - 正在保存 {len(posts)} 条动态的原始元数据到: {os.path.join(os.path.basename(user_folder), 'posts.json')}")
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(posts, f, indent=2, ensure_ascii=False)
        return filepath
