from mangum import Mangum

from api.app import create_app
from core.config import get_settings

app = create_app()

handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
