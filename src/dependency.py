# src/dependency.py

import shutil
import sys

def check_dependencies():
    """
    检查程序运行所需的外部依赖是否存在。
    如果缺少关键依赖，打印友好的错误信息并退出程序。
    """
    _check_ffmpeg()

def _check_ffmpeg():
    """检查 ffmpeg 是否安装且在 PATH 中。DRM 媒体的解密与封装依赖它。"""
    if shutil.which("ffmpeg") is None:
        print("\n" + "=" * 50)
        print(" [严重错误] 未找到核心依赖: ffmpeg")
        print("=" * 50)
        print("  本程序依赖 'ffmpeg' 来解密并封装受 DRM 保护的视频。")
        print("  检测到您的系统中未安装它，或未添加到环境变量 PATH 中。")
        print("\n  解决方法:")
        print("  1. 从 https://ffmpeg.org/download.html 下载并安装 ffmpeg。")
        print("  2. 如果已安装，请确保 ffmpeg 所在目录在系统环境变量 Path 中。")
        print("=" * 50 + "\n")
        sys.exit(1) # 返回非零状态码表示异常退出
