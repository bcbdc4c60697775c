from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campus_bus.src import schemas
from campus_bus.src.constants import API_TITLE, API_VERSION
from campus_bus.api.controller import app_student, app_operator


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/student", app_student, "Student API")
app.mount("/operator", app_operator, "Operator API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
