from __future__ import annotations

import shutil

from lunara.config import PROJECT_ROOT
from lunara.db import engine, init_db
from lunara.seed import seed_base


def main() -> None:
    env_path = PROJECT_ROOT / ".env"
    example = PROJECT_ROOT / ".env.example"
    if not env_path.exists() and example.exists():
        shutil.copyfile(example, env_path)
        print(".env created from .env.example: review JWT_SECRET and the EmailJS keys.")
        print("Run this command again so the new settings are loaded.")
        return

    init_db()
    seed_base()
    print("ENGINE URL:", engine.url)
    print("Setup completed.")
    print("Start the API:      uvicorn lunara.api_main:app --reload")
    print("Start the frontend: streamlit run streamlit_app.py")


if __name__ == "__main__":
    main()
