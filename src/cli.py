# src/cli.py

import argparse
from typing import Any, Dict

# 程序版本号
VERSION = '0.1.0'

def parse_args() -> Dict[str, Any]:
    """
    解析命令行参数，并返回一个包含解析结果的字典。
    """
    parser = argparse.ArgumentParser(description="订阅媒体下载助手（支持 Widevine DRM 媒体）")

    # --- 1. --version 参数 ---
    parser.add_argument('-v', '--version', action='version',
                        version=f'OFDL-DRM v{VERSION}',
                        help='显示当前程序的版本号')

    # --- 2. 配置与下载参数 ---
    parser.add_argument('-c', '--config', type=str,
                        help='指定 config.toml 的路径（默认使用项目根目录下的 config.toml）')

    parser.add_argument('-u', '--user', type=str,
                        help='只下载指定的订阅（用户名或用户ID），其余订阅将被忽略')

    parser.add_argument('-o', '--output', type=str,
                        help='覆盖配置文件中的输出目录 output_dir_path')

    # 3. 解析参数
    args = parser.parse_args()

    # 将解析结果转换为字典返回
    return vars(args)
