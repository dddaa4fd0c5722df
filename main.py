import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import stripe
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.database import Database as MongoDatabase
from pymongo.errors import PyMongoError

from auth import Identity, create_access_token, ensure_self, get_identity, require_admin, is_admin
from config import settings
from database import (
    CONTACT,
    PAYMENTS,
    REVIEWS,
    SCORE_HISTORY,
    USERS,
    Database,
    delete_result,
    get_db,
    insert_result,
    sanitize,
    to_obj_id,
    update_result,
)
from middleware import RequestLoggingMiddleware
from payments import DEFAULT_CURRENCY, PaymentIntentBridge, get_payment_bridge, to_minor_units
from schemas import (
    ContactMessage,
    ContactStatusUpdate,
    Payment,
    PaymentIntentRequest,
    Review,
    ReviewUpdate,
    ScoreHistory,
    TokenRequest,
    User,
)

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    # A missing signing secret is fatal; every guarded route depends on it
    settings.validate_required()
    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; payment intents will fail")

    database = Database(settings)
    app.state.db = None
    # Keep serving when the store is unreachable; requests surface the error as a 500
    try:
        app.state.db = database.connect()
    except PyMongoError as e:
        logger.error("Could not create MongoDB client, continuing without a database: %s", e)
    if app.state.db is not None and not database.ping():
        logger.error("MongoDB is unreachable at startup, continuing anyway")
    app.state.payments = PaymentIntentBridge(settings.stripe_secret_key, settings.stripe_timeout_seconds)
    logger.info("Swipe Defend is sitting on port %d", settings.port)

    yield

    database.close()
    logger.info("MongoDB connection closed")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PyMongoError)
    async def handle_database_error(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "internal server error"})

    @app.exception_handler(stripe.StripeError)
    async def handle_payment_error(request: Request, exc: stripe.StripeError):
        logger.error("Payment processor error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "internal server error"})


# App and CORS
app = FastAPI(title="Swipe Defend API", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


# Auth Routes
@app.post("/jwt")
def issue_token(payload: TokenRequest):
    token = create_access_token(payload.model_dump())
    return {"token": token}


# User Routes
@app.get("/users")
def list_users(admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    return [sanitize(u) for u in db[USERS].find()]


@app.get("/singleuser/{email}")
def get_single_user(email: str, identity: Identity = Depends(get_identity), db: MongoDatabase = Depends(get_db)):
    ensure_self(identity, email)
    return sanitize(db[USERS].find_one({"email": email}))


@app.get("/users/admin/{email}")
def check_admin(email: str, identity: Identity = Depends(get_identity), db: MongoDatabase = Depends(get_db)):
    ensure_self(identity, email)
    return {"admin": is_admin(db, email)}


@app.post("/users")
def create_user(payload: User, db: MongoDatabase = Depends(get_db)):
    # Best-effort check; two concurrent signups for one email can both insert
    user = payload.model_dump()
    if db[USERS].find_one({"email": user["email"]}):
        return {"message": "user already exists", "insertedId": None}
    res = db[USERS].insert_one(user)
    logger.info("Created user %s", res.inserted_id)
    return insert_result(res)


@app.patch("/users/admin/{user_id}")
def make_admin(user_id: str, admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    res = db[USERS].update_one({"_id": to_obj_id(user_id)}, {"$set": {"role": "admin"}})
    logger.info("User %s promoted to admin by %s", user_id, admin.get("email"))
    return update_result(res)


@app.delete("/users/{user_id}")
def delete_user(user_id: str, admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    res = db[USERS].delete_one({"_id": to_obj_id(user_id)})
    return delete_result(res)


# Review Routes
@app.get("/reviews")
def list_reviews(db: MongoDatabase = Depends(get_db)):
    return [sanitize(r) for r in db[REVIEWS].find()]


@app.post("/reviews")
def create_review(payload: Review, db: MongoDatabase = Depends(get_db)):
    return insert_result(db[REVIEWS].insert_one(payload.model_dump()))


@app.patch("/reviews/{review_id}")
def update_review(review_id: str, payload: ReviewUpdate, db: MongoDatabase = Depends(get_db)):
    res = db[REVIEWS].update_one({"_id": to_obj_id(review_id)}, {"$set": payload.model_dump()})
    return update_result(res)


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: MongoDatabase = Depends(get_db)):
    return delete_result(db[REVIEWS].delete_one({"_id": to_obj_id(review_id)}))


# Contact Routes
@app.post("/contact")
def create_contact(payload: ContactMessage, db: MongoDatabase = Depends(get_db)):
    return insert_result(db[CONTACT].insert_one(payload.model_dump()))


@app.get("/contact")
def list_contact(admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    return [sanitize(c) for c in db[CONTACT].find()]


@app.patch("/contact/{contact_id}")
def update_contact_status(
    contact_id: str,
    payload: ContactStatusUpdate,
    admin: Identity = Depends(require_admin),
    db: MongoDatabase = Depends(get_db),
):
    res = db[CONTACT].update_one({"_id": to_obj_id(contact_id)}, {"$set": {"status": payload.status}})
    return update_result(res)


@app.delete("/contact/{contact_id}")
def delete_contact(contact_id: str, admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    return delete_result(db[CONTACT].delete_one({"_id": to_obj_id(contact_id)}))


# Payment Routes
@app.post("/create-payment-intent")
def create_payment_intent(payload: PaymentIntentRequest, bridge: PaymentIntentBridge = Depends(get_payment_bridge)):
    client_secret = bridge.create_intent(to_minor_units(payload.price), DEFAULT_CURRENCY)
    return {"clientSecret": client_secret}


@app.get("/payments")
def list_payments(admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    return [sanitize(p) for p in db[PAYMENTS].find()]


@app.get("/payments/{email}")
def list_user_payments(email: str, identity: Identity = Depends(get_identity), db: MongoDatabase = Depends(get_db)):
    return [sanitize(p) for p in db[PAYMENTS].find({"email": email})]


@app.post("/payments")
def create_payment(payload: Payment, db: MongoDatabase = Depends(get_db)):
    res = db[PAYMENTS].insert_one(payload.model_dump())
    return {"paymentResult": insert_result(res)}


# Score History Routes
@app.get("/scoreHistory")
def list_score_history(admin: Identity = Depends(require_admin), db: MongoDatabase = Depends(get_db)):
    return [sanitize(s) for s in db[SCORE_HISTORY].find()]


@app.get("/scoreHistory/{email}")
def list_user_score_history(email: str, identity: Identity = Depends(get_identity), db: MongoDatabase = Depends(get_db)):
    return [sanitize(s) for s in db[SCORE_HISTORY].find({"email": email})]


@app.post("/scoreHistory")
def create_score_history(payload: ScoreHistory, identity: Identity = Depends(get_identity), db: MongoDatabase = Depends(get_db)):
    return insert_result(db[SCORE_HISTORY].insert_one(payload.model_dump()))


# Utility endpoints
@app.get("/", response_class=PlainTextResponse)
def root():
    return "Swipe Defend is sitting"


@app.get("/health")
def health(db: MongoDatabase = Depends(get_db)):
    try:
        db.client.admin.command("ping")
    except PyMongoError as e:
        logger.warning("Health check: database unreachable: %s", e)
        return {"backend": "ok", "database": "unreachable"}
    return {"backend": "ok", "database": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
