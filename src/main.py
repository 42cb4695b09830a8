# src/main.py

from app import Application
from config import Config, load_credentials, load_dynamic_rules, load_widevine_credentials
from cli import parse_args, VERSION
from dependency import check_dependencies
from errors import AuthError, ConfigError
from services.decryptor import create_cdm

def main():
    """
    主函数，作为程序的入口点。
    """
    # 1. 调用 cli.py 中的解析函数来处理命令行参数
    args = parse_args()

    # 2. 环境依赖检查
    check_dependencies()

    print(f"正在启动 OFDL-DRM v{VERSION} ...")

    # 3. 创建配置对象
    app_config = Config(args.get('config'))

    cli_output = args.get('output')
    if cli_output:
        print(f"\n[CLI] 检测到命令行指定输出目录: {cli_output}")
        app_config.OUTPUT_DIR_PATH = cli_output

    # 4. 加载认证信息、签名规则与 CDM，任何缺失或无效都在发出请求之前结束程序
    try:
        credentials = load_credentials(app_config.AUTH_FILE_PATH)
        print("已找到认证信息。")
        rules = load_dynamic_rules(app_config.DYNAMIC_RULES)
        widevine = load_widevine_credentials(app_config.WIDEVINE_PRIVATE_KEY_PATH, app_config.WIDEVINE_CLIENT_ID_PATH)
        cdm = create_cdm(widevine) if widevine else None
    except ConfigError as e:
        print(e)
        # TODO: 与使用者确认后改为非零退出码，目前与旧版行为保持一致
        return

    app = Application(app_config, credentials, rules, cdm, only_user=args.get('user'))

    # 5. 运行应用程序
    try:
        app.run()
    except AuthError as e:
        print("获取有效订阅时出错。")
        print(f"服务器返回错误: {e}")
        print("这可能是认证信息错误导致的，请检查 auth.json 后重试。")

if __name__ == '__main__':
    main()
