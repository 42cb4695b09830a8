# src/config.py

import os
import json
import tomllib
import requests
from typing import Dict, Any, Optional

from errors import ConfigError
from models import Credentials, DynamicRuleSet, WidevineCredentials

# auth.json 中的字段名，与 Credentials 的字段一一对应
AUTH_FIELDS = {
    "AUTH_ID": "identity_id",
    "USER_AGENT": "user_agent",
    "SESS": "session_token",
    "XBC": "client_token",
}

AUTH_GUIDANCE = "请在 auth.json 中填写您的认证信息，然后重试。"


class Config:
    """
    应用程序配置类。
    从项目根目录的 'config.toml' 文件（或指定路径）中加载配置，并进行完整性验证。
    """
    def __init__(self, config_path: Optional[str] = None):
        # 1. 自动定位 config.toml 文件
        if config_path is None:
            current_dir = os.path.dirname(os.path.abspath(__file__))
            project_root = os.path.dirname(current_dir)
            config_path = os.path.join(project_root, 'config.toml')

        # 2. 读取并解析 TOML 文件
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"配置文件未找到，请确保 'config.toml' 位于项目根目录: {config_path}")

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise RuntimeError(f"解析配置文件失败 (格式错误): {e}")

        # 3. 验证配置数据的合法性
        self._validate_config(data)

        # 相对路径以配置文件所在目录为基准
        base_dir = os.path.dirname(os.path.abspath(config_path))

        # 4. 将 TOML 配置映射到类属性
        self.OUTPUT_DIR_PATH = self._resolve(base_dir, data["output_dir_path"])
        self.AUTH_FILE_PATH = self._resolve(base_dir, data["auth_file_path"])
        self.DYNAMIC_RULES = data["dynamic_rules"]
        if not self.DYNAMIC_RULES.startswith(("http://", "https://")):
            self.DYNAMIC_RULES = self._resolve(base_dir, self.DYNAMIC_RULES)
        self.WIDEVINE_PRIVATE_KEY_PATH = self._resolve(base_dir, data.get("widevine_private_key_path", ""))
        self.WIDEVINE_CLIENT_ID_PATH = self._resolve(base_dir, data.get("widevine_client_id_path", ""))

    @staticmethod
    def _resolve(base_dir: str, path: str) -> str:
        if not path.strip():
            return ""
        return path if os.path.isabs(path) else os.path.join(base_dir, path)

    def _validate_config(self, data: Dict[str, Any]):
        """
        验证配置字典的合法性。
        检查必填字段、数据类型和有效值范围。
        """
        # --- 1. 检查必填字段是否存在 ---
        required_fields = ["output_dir_path", "auth_file_path", "dynamic_rules"]
        for field in required_fields:
            if field not in data:
                raise ValueError(f"配置文件 config.toml 缺少必填字段: '{field}'")

        # --- 2. 检查数据类型 ---
        for field in required_fields + ["widevine_private_key_path", "widevine_client_id_path"]:
            if field in data and not isinstance(data[field], str):
                raise TypeError(f"配置错误: '{field}' 必须是字符串，实际为 {type(data[field]).__name__}")

        # 并发数固定为 10，旧配置中遗留的 max_workers 不再生效
        if "max_workers" in data:
            raise ValueError("配置错误: 'max_workers' 已不再支持，并发数固定为 10，请从 config.toml 中删除该字段。")

        # --- 3. 检查值的有效性 ---
        if not data["output_dir_path"].strip():
            raise ValueError("配置错误: 'output_dir_path' (输出目录) 不能为空。")
        if not data["auth_file_path"].strip():
            raise ValueError("配置错误: 'auth_file_path' 不能为空。")
        if not data["dynamic_rules"].strip():
            raise ValueError("配置错误: 'dynamic_rules' 不能为空。")

        # Widevine 的两个文件必须同时配置
        has_key = bool(data.get("widevine_private_key_path", "").strip())
        has_client_id = bool(data.get("widevine_client_id_path", "").strip())
        if has_key != has_client_id:
            raise ValueError("配置错误: 'widevine_private_key_path' 与 'widevine_client_id_path' 必须同时配置。")
        if not has_key:
            print("警告: 未配置 Widevine 凭据，受 DRM 保护的媒体将无法下载。")


def load_credentials(auth_path: str) -> Credentials:
    """
    读取 auth.json。
    文件不存在时写入一个空模板并抛出 ConfigError；任一字段为空同样抛出 ConfigError。
    """
    if not os.path.exists(auth_path):
        os.makedirs(os.path.dirname(os.path.abspath(auth_path)), exist_ok=True)
        with open(auth_path, 'w', encoding='utf-8') as f:
            json.dump({key: "" for key in AUTH_FIELDS}, f, indent=2)
        raise ConfigError(f"已创建认证模板 {auth_path}。{AUTH_GUIDANCE}", created_template=True)

    try:
        with open(auth_path, 'r', encoding='utf-8') as f:
            auth = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"auth.json 格式错误: {e}。{AUTH_GUIDANCE}")

    if not isinstance(auth, dict):
        raise ConfigError(f"auth.json 格式错误：应为 JSON 对象。{AUTH_GUIDANCE}")

    missing = [key for key in AUTH_FIELDS if not isinstance(auth.get(key), str) or not auth[key].strip()]
    if missing:
        raise ConfigError(f"部分认证信息缺失: {', '.join(missing)}。{AUTH_GUIDANCE}")

    return Credentials(**{attr: auth[key].strip() for key, attr in AUTH_FIELDS.items()})


def load_dynamic_rules(source: str, session: Optional[requests.Session] = None) -> DynamicRuleSet:
    """从本地 JSON 文件或 URL 加载动态签名规则。"""
    if source.startswith(("http://", "https://")):
        http = session or requests.Session()
        try:
            response = http.get(source, timeout=20)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ConfigError(f"无法获取动态规则 {source}: {e}")
    else:
        if not os.path.exists(source):
            raise ConfigError(f"动态规则文件不存在: {source}")
        try:
            with open(source, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"动态规则文件格式错误: {e}")

    return DynamicRuleSet.from_dict(data)


def load_widevine_credentials(private_key_path: str, client_id_path: str) -> Optional[WidevineCredentials]:
    """读取 CDM 私钥与客户端标识。两者均未配置时返回 None。"""
    if not private_key_path and not client_id_path:
        return None

    blobs = []
    for path in (private_key_path, client_id_path):
        if not os.path.exists(path):
            raise ConfigError(f"Widevine 凭据文件不存在: {path}")
        with open(path, 'rb') as f:
            blobs.append(f.read())

    return WidevineCredentials(private_key=blobs[0], client_id=blobs[1])
