import os

import uvicorn

from reelhouse.core.app import app  # noqa: F401
from reelhouse.core.config import settings

if __name__ == "__main__":
    PORT = os.getenv("PORT", settings.PORT)
    reload = settings.APP_ENV == "development"
    uvicorn.run("reelhouse.core.app:app", host="0.0.0.0", port=int(PORT), reload=reload)
