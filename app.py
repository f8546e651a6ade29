from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from api.main import app  # noqa: E402,F401

# Run with: uvicorn app:app
