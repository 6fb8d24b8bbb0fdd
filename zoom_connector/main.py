from fastapi import FastAPI

from zoom_connector.api.routes import router

app = FastAPI(
    title="Zoom to Google Drive Connector",
    description="Moves Zoom cloud recordings and AI summaries into Google Drive",
)

app.include_router(router)
