import os
import re
import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, HTTPException, Depends, Query, Cookie, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from pymongo import DESCENDING
from pymongo.errors import PyMongoError
from pymongo.database import Database
from bson import ObjectId
from bson.errors import InvalidId
import stripe
from jose import jwt, JWTError

from database import connect, get_db, create_document, get_documents, next_sequence, now_utc
from schemas import (
    User,
    Biodata,
    Favorite,
    ContactRequest,
    SuccessStory,
    UserStatus,
    BiodataStatus,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Stripe setup
stripe.api_key = os.getenv("STRIPE_SECRET_KEY", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")
CONTACT_REQUEST_FEE = float(os.getenv("CONTACT_REQUEST_FEE", "5"))

# Auth config
SECRET_KEY = os.getenv("ACCESS_TOKEN_SECRET", "super-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 60 * 60 * 24 * 365  # 365 days
TOKEN_COOKIE = "token"
PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    client, app.state.db = connect()
    logger.info("Connected to MongoDB database %s", app.state.db.name)
    try:
        yield
    finally:
        client.close()
        logger.info("MongoDB connection closed")


app = FastAPI(title="HeartsUnite API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------- Models -----------------
class CredentialRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class PaymentIntentRequest(BaseModel):
    price: float = Field(..., gt=0)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    photo: Optional[str] = None
    status: Optional[UserStatus] = None


class BiodataStatusUpdate(BaseModel):
    biodataStatus: BiodataStatus


# ----------------- Utils -----------------
def create_access_token(email: str, name: Optional[str] = None) -> str:
    now = int(time.time())
    payload = {"sub": email, "email": email, "iat": now, "exp": now + ACCESS_TOKEN_EXPIRE_SECONDS}
    if name:
        payload["name"] = name
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": PRODUCTION,
        "samesite": "none" if PRODUCTION else "strict",
    }


def get_current_user(token: Optional[str] = Cookie(None)) -> str:
    if not token:
        raise HTTPException(status_code=401, detail="unauthorized access")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected credential: %s", e)
        raise HTTPException(status_code=401, detail="unauthorized access")
    email = payload.get("email") or payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="unauthorized access")
    return email


def is_admin(db: Database, email: str) -> bool:
    user = db["users"].find_one({"email": email}, {"status": 1})
    return bool(user) and user.get("status") == "Admin"


def require_admin(email: str = Depends(get_current_user), db: Database = Depends(get_db)) -> str:
    if not is_admin(db, email):
        raise HTTPException(status_code=403, detail="forbidden access")
    return email


def require_self_or_admin(db: Database, actor: str, owner: Optional[str]):
    if actor != owner and not is_admin(db, actor):
        raise HTTPException(status_code=403, detail="forbidden access")


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid ID")


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def find_or_404(db: Database, collection: str, query: dict, detail: str) -> dict:
    doc = db[collection].find_one(query)
    if not doc:
        raise HTTPException(status_code=404, detail=detail)
    return doc


@app.get("/")
def root():
    return {"message": "Hello from HeartsUnite Server.."}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    response["database_name"] = db.name
    response["connection_status"] = "Connected"
    try:
        collections = db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


# ----------------- Auth -----------------
@app.post("/jwt")
def issue_token(req: CredentialRequest, response: Response):
    token = create_access_token(req.email, req.name)
    response.set_cookie(TOKEN_COOKIE, token, max_age=ACCESS_TOKEN_EXPIRE_SECONDS, **cookie_options())
    logger.info("Issued credential for %s", req.email)
    return {"success": True}


@app.get("/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE, **cookie_options())
    logger.info("Logout successful")
    return {"success": True}


# ----------------- Stripe Payment -----------------
@app.post("/create-payment-intent")
def create_payment_intent(req: PaymentIntentRequest, email: str = Depends(get_current_user)):
    if not stripe.api_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    try:
        intent = stripe.PaymentIntent.create(
            amount=round(req.price * 100),
            currency=PAYMENT_CURRENCY,
            receipt_email=email,
            automatic_payment_methods={"enabled": True},
        )
    except stripe.StripeError as e:
        logger.exception("Payment intent failed for %s", email)
        raise HTTPException(status_code=400, detail=str(e))
    return {"clientSecret": intent.client_secret}


# ----------------- Users -----------------
@app.put("/user")
def save_user(user: User, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    if user.email != email:
        raise HTTPException(status_code=403, detail="forbidden access")
    query = {"email": user.email}
    existing = db["users"].find_one(query)
    if existing:
        if user.status == "Requested":
            # existing user asks for a role change; nothing else is touched
            result = db["users"].update_one(query, {"$set": {"status": user.status, "updated_at": now_utc()}})
            return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}
        return serialize(existing)

    now = now_utc()
    doc = user.model_dump()
    # a new user can only start as Normal or Requested, never Admin
    doc["status"] = "Requested" if user.status == "Requested" else "Normal"
    doc.update({"created_at": now, "updated_at": now})
    result = db["users"].update_one(query, {"$setOnInsert": doc}, upsert=True)
    logger.info("Created user %s", user.email)
    upserted = str(result.upserted_id) if result.upserted_id else None
    return {"matchedCount": result.matched_count, "upsertedId": upserted}


@app.get("/user/{email}")
def get_user(email: str, actor: str = Depends(get_current_user), db: Database = Depends(get_db)):
    require_self_or_admin(db, actor, email)
    return serialize(find_or_404(db, "users", {"email": email}, "User not found"))


@app.get("/users")
def list_users(
    search: Optional[str] = Query(None, description="Partial, case-insensitive name match"),
    admin: str = Depends(require_admin),
    db: Database = Depends(get_db),
):
    q = {}
    if search:
        q["name"] = {"$regex": re.escape(search), "$options": "i"}
    return [serialize(u) for u in db["users"].find(q)]


@app.patch("/users/update/{email}")
def update_user(email: str, body: UserUpdate, admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="Nothing to update")
    updates["updated_at"] = now_utc()
    result = db["users"].update_one({"email": email}, {"$set": updates})
    logger.info("Admin %s updated user %s: %s", admin, email, sorted(updates))
    return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}


# ----------------- Biodatas -----------------
@app.get("/biodatas")
def list_biodatas(
    page: int = Query(1, ge=1),
    limit: int = Query(4, ge=1, le=100),
    biodataType: Optional[str] = Query(None),
    permanentDivision: Optional[str] = Query(None),
    minAge: Optional[int] = Query(None, ge=0),
    maxAge: Optional[int] = Query(None, ge=0),
    db: Database = Depends(get_db),
):
    q = {}
    if biodataType:
        q["biodataType"] = biodataType
    if permanentDivision:
        q["permanentDivision"] = permanentDivision
    if minAge is not None or maxAge is not None:
        q["age"] = {}
        if minAge is not None:
            q["age"]["$gte"] = minAge
        if maxAge is not None:
            q["age"]["$lte"] = maxAge
    skip = (page - 1) * limit
    items = get_documents(db, "biodatas", q, limit=limit, skip=skip, sort=[("biodataId", 1)])
    total = db["biodatas"].count_documents(q)
    return {"biodatas": [serialize(b) for b in items], "total": total}


@app.get("/biodata/{id}")
def get_biodata(id: str, db: Database = Depends(get_db)):
    return serialize(find_or_404(db, "biodatas", {"_id": oid(id)}, "Biodata not found"))


@app.get("/similarBiodatas")
def similar_biodatas(biodataType: str = Query(...), db: Database = Depends(get_db)):
    return [serialize(b) for b in get_documents(db, "biodatas", {"biodataType": biodataType}, limit=3)]


@app.get("/viewBiodata/{email}")
def view_biodata(email: str, actor: str = Depends(get_current_user), db: Database = Depends(get_db)):
    require_self_or_admin(db, actor, email)
    return [serialize(b) for b in db["biodatas"].find({"contactEmail": email})]


@app.post("/biodata")
def create_biodata(biodata: Biodata, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    data = biodata.model_dump()
    data["contactEmail"] = email
    data["biodataStatus"] = "Normal"
    data["biodataId"] = next_sequence(db, "biodataId")
    inserted_id = create_document(db, "biodatas", data)
    logger.info("Created biodata %s for %s", data["biodataId"], email)
    return {"insertedId": inserted_id, "biodataId": data["biodataId"]}


@app.get("/allPremiumReq")
def premium_requests(admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    return [serialize(b) for b in db["biodatas"].find({"biodataStatus": "Requested"})]


@app.get("/allPremiumMember")
def premium_members(db: Database = Depends(get_db)):
    return [serialize(b) for b in db["biodatas"].find({"biodataStatus": "Premium"})]


@app.patch("/biodata/{id}")
def update_biodata_status(
    id: str,
    body: BiodataStatusUpdate,
    email: str = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    biodata = find_or_404(db, "biodatas", {"_id": oid(id)}, "Biodata not found")
    if not is_admin(db, email):
        # owners may only ask for premium, and only from Normal
        if biodata.get("contactEmail") != email:
            raise HTTPException(status_code=403, detail="forbidden access")
        if body.biodataStatus != "Requested" or biodata.get("biodataStatus") != "Normal":
            raise HTTPException(status_code=400, detail="Only a premium request can be made on a normal biodata")
    result = db["biodatas"].update_one(
        {"_id": biodata["_id"]},
        {"$set": {"biodataStatus": body.biodataStatus, "updated_at": now_utc()}},
    )
    logger.info("Biodata %s status set to %s by %s", biodata.get("biodataId"), body.biodataStatus, email)
    return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}


@app.patch("/makePremium/{id}")
def make_premium(id: str, admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    result = db["biodatas"].update_one(
        {"_id": oid(id)},
        {"$set": {"biodataStatus": "Premium", "updated_at": now_utc()}},
    )
    logger.info("Admin %s made biodata %s premium", admin, id)
    return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}


@app.get("/checkout/{biodataId}")
def checkout(biodataId: int, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize(find_or_404(db, "biodatas", {"biodataId": biodataId}, "Biodata not found"))


# ----------------- Favourites -----------------
@app.get("/favBiodatas")
def list_favorites(email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    return [serialize(f) for f in db["favBiodatas"].find({"email": email})]


@app.post("/favBiodata")
def add_favorite(fav: Favorite, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    data = fav.model_dump()
    data["email"] = email
    return {"insertedId": create_document(db, "favBiodatas", data)}


@app.delete("/favBiodata/{id}")
def delete_favorite(id: str, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    query = {"_id": oid(id)}
    fav = db["favBiodatas"].find_one(query)
    if fav and fav.get("email") != email:
        raise HTTPException(status_code=403, detail="forbidden access")
    result = db["favBiodatas"].delete_one(query)
    return {"deletedCount": result.deleted_count}


# ----------------- Contact Requests -----------------
def mask_contact(req: dict) -> dict:
    if req.get("requestStatus") != "Approved":
        req["contactEmail"] = None
        req["mobileNumber"] = None
    return req


@app.post("/contactReqs")
def create_contact_request(body: ContactRequest, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    target = find_or_404(db, "biodatas", {"biodataId": body.biodataId}, "Biodata not found")
    data = body.model_dump()
    data.update({
        "requesterEmail": email,
        "name": target.get("name"),
        "contactEmail": target.get("contactEmail"),
        "mobileNumber": target.get("mobileNumber"),
        "requestStatus": "Pending",
    })
    return {"insertedId": create_document(db, "contactReqs", data)}


@app.get("/contactReqs")
def list_contact_requests(admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    return [serialize(r) for r in db["contactReqs"].find()]


@app.get("/contactReqs/{email}")
def my_contact_requests(email: str, actor: str = Depends(get_current_user), db: Database = Depends(get_db)):
    require_self_or_admin(db, actor, email)
    return [mask_contact(serialize(r)) for r in db["contactReqs"].find({"requesterEmail": email})]


@app.patch("/contactReqs/{id}")
def approve_contact_request(id: str, admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    result = db["contactReqs"].update_one(
        {"_id": oid(id)},
        {"$set": {"requestStatus": "Approved", "updated_at": now_utc()}},
    )
    logger.info("Admin %s approved contact request %s (matched=%d)", admin, id, result.matched_count)
    return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}


@app.delete("/contactReqs/{id}")
def delete_contact_request(id: str, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    query = {"_id": oid(id)}
    req = db["contactReqs"].find_one(query)
    if req and req.get("requesterEmail") != email and not is_admin(db, email):
        raise HTTPException(status_code=403, detail="forbidden access")
    result = db["contactReqs"].delete_one(query)
    return {"deletedCount": result.deleted_count}


# ----------------- Admin -----------------
@app.get("/admin-stat")
def admin_stat(admin: str = Depends(require_admin), db: Database = Depends(get_db)):
    biodatas = db["biodatas"]
    contact_requests = db["contactReqs"].count_documents({})
    return {
        "totalBiodata": biodatas.count_documents({}),
        "maleBiodata": biodatas.count_documents({"biodataType": "Male"}),
        "femaleBiodata": biodatas.count_documents({"biodataType": "Female"}),
        "premiumBiodata": biodatas.count_documents({"biodataStatus": "Premium"}),
        "revenue": contact_requests * CONTACT_REQUEST_FEE,
        "marriageCompleted": db["successStories"].count_documents({}),
    }


# ----------------- Success Stories -----------------
@app.get("/success-stories")
def list_success_stories(db: Database = Depends(get_db)):
    stories = get_documents(db, "successStories", sort=[("marriageDate", DESCENDING)])
    return [serialize(s) for s in stories]


@app.post("/success-stories")
def create_success_story(story: SuccessStory, email: str = Depends(get_current_user), db: Database = Depends(get_db)):
    data = story.model_dump()
    data["email"] = email
    return {"insertedId": create_document(db, "successStories", data)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
