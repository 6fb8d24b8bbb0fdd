#!/usr/bin/env python3
"""
Setup script for the Zoom to Google Drive connector
"""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(PROJECT_ROOT))

from config import load_settings
from zoom_connector.errors import ConfigError, TrackingError
from zoom_connector.services.tracking_sheet import SheetsTracker

CRON_SCHEDULE = "0 8 * * *"


def check_python_version():
    """Check if Python version is compatible"""
    if sys.version_info < (3, 8):
        print("❌ Python 3.8 or higher is required")
        sys.exit(1)
    print(f"✅ Python {sys.version_info.major}.{sys.version_info.minor} detected")


def create_env_file():
    """Create .env file from template if it doesn't exist"""
    env_file = PROJECT_ROOT / ".env"
    env_example = PROJECT_ROOT / ".env.example"

    if env_file.exists():
        print("✅ .env file already exists")
        return True
    if not env_example.exists():
        print("❌ .env.example file not found")
        return False

    print("📝 Creating .env file from template...")
    env_file.write_text(env_example.read_text())
    print("✅ .env file created - please configure your credentials")
    return True


def create_logs_directory(log_dir):
    """Create logs directory if it doesn't exist"""
    if os.path.isdir(log_dir):
        print("✅ Logs directory already exists")
    else:
        os.makedirs(log_dir)
        print("✅ Created logs directory")


def initialize_tracking_sheet(settings):
    """Create or open the tracking spreadsheet and remember its ID"""
    if not Path(settings.google_credentials_file).exists():
        print(f"⚠️  Google credentials file not found at: {settings.google_credentials_file}")
        return False
    try:
        tracker = SheetsTracker(settings)
        tracker.ensure_initialized()
    except TrackingError as e:
        print(f"❌ Could not initialize tracking sheet: {e}")
        return False
    print(f"✅ Tracking sheet ready: {tracker.spreadsheet_url}")
    return True


def print_cron_line():
    """Print the crontab entry for the daily run"""
    python = sys.executable
    script = PROJECT_ROOT / "scripts" / "run_connector.py"
    print("\n📅 Add this line to your crontab (crontab -e) to run daily at 08:00 UTC:")
    print(f"{CRON_SCHEDULE} cd {PROJECT_ROOT} && {python} {script} >> /dev/null 2>&1")


def main():
    print("🚀 Setting up Zoom to Google Drive connector\n")
    check_python_version()
    if not create_env_file():
        sys.exit(1)

    try:
        settings = load_settings(str(PROJECT_ROOT / ".env"))
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)

    create_logs_directory(settings.log_dir)
    initialize_tracking_sheet(settings)
    print_cron_line()


if __name__ == "__main__":
    main()
