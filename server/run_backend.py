import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError
import uvicorn

if __name__ == "__main__":
    load_dotenv()
    try:
        from app.config.settings import settings  # noqa: F401
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]).upper() for err in e.errors())
        print(f"Missing or invalid configuration: {missing}", file=sys.stderr)
        sys.exit(1)
    port = int(os.getenv("PORT", 8002))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=os.getenv("ENV", "dev") == "dev")
