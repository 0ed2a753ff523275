import os
import sys
from dotenv import load_dotenv

# Загрузка переменных окружения ДО всех импортов
load_dotenv()

from presentation.telegram.bot import RelayBot


def check_required_vars():
    """Проверка обязательных переменных окружения"""
    missing_vars = []

    if not os.getenv("TELEGRAM_BOT_TOKEN"):
        missing_vars.append("TELEGRAM_BOT_TOKEN")

    # Числовой Telegram ID оператора (можно узнать у @userinfobot)
    if not os.getenv("OPERATOR_ID"):
        missing_vars.append("OPERATOR_ID")

    return missing_vars


if __name__ == "__main__":
    missing_vars = check_required_vars()

    if missing_vars:
        print(f"❌ Missing required environment variables: {', '.join(missing_vars)}")
        print("Please check your .env file")
        sys.exit(1)

    print("🔧 Loaded configuration:")
    print(f"   HTTP port: {os.getenv('PORT', '3000')}")
    print(f"   Metrics port: {os.getenv('METRICS_PORT', '8000')}")
    print(f"   Active window: {os.getenv('ACTIVE_WINDOW_START', '06:00')}-{os.getenv('ACTIVE_WINDOW_END', '00:00')}")
    print(f"   Log level: {os.getenv('LOG_LEVEL', 'INFO')}")

    try:
        bot = RelayBot()
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    bot.run()
