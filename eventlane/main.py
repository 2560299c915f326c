from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from eventlane.database import Base, engine
from eventlane.logger import get_logger
from eventlane.middleware import add_request_id_and_process_time
from eventlane.models import registry  # noqa: F401
from eventlane.routes.user_route import user_router
from eventlane.routes.venue_route import venue_router
from eventlane.routes.booking_route import booking_router
from eventlane.routes.message_route import message_router
from eventlane.routes.realtime_route import realtime_router

logger = get_logger(__name__)

Base.metadata.create_all(bind=engine)
app = FastAPI(
    title="Eventlane API",
    version="1.0.0",
    description="Venue discovery and event booking for Eventlane.ph: browse venues, request bookings, "
                "manage confirmations and change requests, and message venue owners.",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(add_request_id_and_process_time)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=500, content={"detail": "Something went wrong. Please try again."})


@app.get("/", status_code=200)
async def home():
    return {"message": "Welcome to the Eventlane API"}


app.include_router(user_router, prefix="/api", tags=["Users"])
app.include_router(venue_router, prefix="/api", tags=["Venues"])
app.include_router(booking_router, prefix="/api", tags=["Bookings"])
app.include_router(message_router, prefix="/api", tags=["Messages"])
app.include_router(realtime_router, prefix="/api", tags=["Realtime"])
