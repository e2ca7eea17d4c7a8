"""
MongoDB Service - shared document helpers and the small collections.

Collections handled here:
1. users                - staff accounts and their store/marca assignments
2. holdings, marcas, tiendas - tenant hierarchy
3. blacklist            - DNIs barred from applying (document id = DNI)
4. calendar_connections - OAuth tokens per staff user (document id = user id)
5. email_log            - every transactional email sent or mocked

RQs, job profiles and candidates have their own service modules.
"""

import re
import unicodedata
from datetime import datetime
from typing import Optional, List, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from talent_portal.db.mongodb import get_collection
from talent_portal.core.exceptions import NotFoundException, ValidationException


# ============================================================
# HELPERS: ObjectId <-> string, slugs
# ============================================================

def serialize_doc(doc: dict) -> Optional[dict]:
    """Convert MongoDB document to JSON-serializable dict with an `id` key."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def serialize_docs(docs) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def slugify(text: str) -> str:
    """'Papa John's Perú' -> 'papa-johns-peru'"""
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    ascii_text = ascii_text.replace("'", "")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")


def is_active(doc: dict) -> bool:
    """Older documents use `active`, newer ones `isActive`."""
    return doc.get("isActive") is True or doc.get("active") is True


# ============================================================
# BASE SERVICE
# ============================================================

class DocumentService:
    """
    CRUD shared by every ObjectId-keyed collection.
    Subclasses set `collection_name` and `label` (used in 404 messages).
    """

    collection_name: str = ""
    label: str = "Document"

    def __init__(self):
        self.collection: Collection = get_collection(self.collection_name)

    def find_by_id(self, doc_id: str) -> Optional[dict]:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return serialize_doc(self.collection.find_one({"_id": oid}))

    def get(self, doc_id: str) -> dict:
        """Like find_by_id but raises NotFoundException."""
        doc = self.find_by_id(doc_id)
        if doc is None:
            raise NotFoundException(f"{self.label} not found")
        return doc

    def find(self, query: dict = None, sort: List = None, limit: int = 0) -> List[dict]:
        cursor = self.collection.find(query or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return serialize_docs(cursor)

    def insert(self, data: dict) -> str:
        now = datetime.utcnow()
        doc = {**data, "createdAt": data.get("createdAt", now), "updatedAt": now}
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def update(self, doc_id: str, fields: dict) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        result = self.collection.update_one(
            {"_id": oid},
            {"$set": {**fields, "updatedAt": datetime.utcnow()}}
        )
        return result.matched_count > 0

    def delete(self, doc_id: str) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count > 0


# ============================================================
# USERS
# ============================================================

class UserService(DocumentService):
    """Staff accounts. Candidates live in `candidates`, not here."""

    collection_name = "users"
    label = "User"

    def find_by_email(self, email: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"email": (email or "").lower()}))

    def create(self, email: str, password_hash: str, role: str, **fields) -> str:
        if self.find_by_email(email):
            raise ValidationException("Email already registered")
        try:
            return self.insert({
                "email": email.lower(),
                "passwordHash": password_hash,
                "role": role,
                "isActive": True,
                **fields
            })
        except DuplicateKeyError:
            raise ValidationException("Email already registered")

    def reset_password(self, token: str, password_hash: str, now: Optional[datetime] = None) -> str:
        """Swap the password for a valid reset token and clear the token. Returns the user id."""
        now = now or datetime.utcnow()
        user = self.collection.find_one({"resetToken": token}) if token else None
        if not user:
            raise ValidationException("Invalid reset token")

        expiry = user.get("resetTokenExpiry")
        if not expiry or expiry < now:
            self.collection.update_one({"_id": user["_id"]},
                                       {"$unset": {"resetToken": "", "resetTokenExpiry": ""}})
            raise ValidationException("Reset token expired", {"expired": True})

        self.collection.update_one(
            {"_id": user["_id"]},
            {
                "$set": {"passwordHash": password_hash, "updatedAt": now},
                "$unset": {"resetToken": "", "resetTokenExpiry": ""}
            }
        )
        return str(user["_id"])

    def list_by_holding(self, holding_id: Optional[str] = None) -> List[dict]:
        query = {"holdingId": holding_id} if holding_id else {}
        users = self.find(query, sort=[("email", 1)])
        for user in users:
            user.pop("passwordHash", None)
            user.pop("resetToken", None)
        return users

    def find_supervisor_for_store(self, tienda_id: str) -> Optional[dict]:
        """Active supervisor whose assignedStores contains the tienda."""
        for user in self.find({"role": "supervisor"}):
            if not is_active(user):
                continue
            stores = user.get("assignedStores") or []
            if any(store.get("tiendaId") == tienda_id for store in stores):
                return user
        return None

    def find_jefe_for_marca(self, marca_id: str) -> Optional[dict]:
        """Active jefe de marca assigned to the marca."""
        for user in self.find({"role": "jefe_marca"}):
            if not is_active(user):
                continue
            if (user.get("assignedMarca") or {}).get("marcaId") == marca_id:
                return user
        return None

    def find_store_manager(self, tienda_id: str) -> Optional[dict]:
        """Active store manager of the tienda."""
        for user in self.find({"role": "store_manager", "assignedStore.tiendaId": tienda_id}):
            if is_active(user):
                return user
        return None


# ============================================================
# TENANTS: HOLDING -> MARCA -> TIENDA
# ============================================================

class HoldingService(DocumentService):
    collection_name = "holdings"
    label = "Holding"

    def create(self, data: dict) -> str:
        slug = data.get("slug") or slugify(data["nombre"])
        if self.collection.find_one({"slug": slug}):
            raise ValidationException(f"Holding slug '{slug}' already exists")
        return self.insert({**data, "slug": slug})

    def find_by_slug(self, slug: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"slug": slug}))

    def find_by_id_or_slug(self, value: str) -> Optional[dict]:
        return self.find_by_id(value) or self.find_by_slug(value)


class MarcaService(DocumentService):
    collection_name = "marcas"
    label = "Marca"

    def create(self, data: dict) -> str:
        slug = data.get("slug") or slugify(data["nombre"])
        if self.collection.find_one({"holdingId": data["holdingId"], "slug": slug}):
            raise ValidationException(f"Marca slug '{slug}' already exists in holding")
        return self.insert({**data, "slug": slug})

    def list_by_holding(self, holding_id: str) -> List[dict]:
        return self.find({"holdingId": holding_id}, sort=[("nombre", 1)])


class TiendaService(DocumentService):
    collection_name = "tiendas"
    label = "Tienda"

    def create(self, data: dict) -> str:
        slug = data.get("slug") or slugify(data["nombre"])
        if self.collection.find_one({"marcaId": data["marcaId"], "slug": slug}):
            raise ValidationException(f"Tienda slug '{slug}' already exists in marca")
        return self.insert({**data, "slug": slug})

    def list_by_marca(self, marca_id: str) -> List[dict]:
        return self.find({"marcaId": marca_id}, sort=[("nombre", 1)])

    def get_coordinates(self, tienda_id: str) -> Optional[Dict[str, float]]:
        tienda = self.find_by_id(tienda_id)
        if not tienda:
            return None
        return tienda.get("coordinates") or None


# ============================================================
# BLACKLIST (keyed by DNI)
# ============================================================

class BlacklistService:
    def __init__(self):
        self.collection: Collection = get_collection("blacklist")

    def is_blacklisted(self, dni: str) -> Optional[dict]:
        if not dni:
            return None
        return serialize_doc(self.collection.find_one({"_id": dni}))

    def add(self, dni: str, nombre: str, motivo: str, added_by: str, holding_id: str = None) -> None:
        self.collection.replace_one(
            {"_id": dni},
            {
                "_id": dni,
                "dni": dni,
                "nombre": nombre,
                "motivo": motivo,
                "addedAt": datetime.utcnow(),
                "addedBy": added_by,
                "holdingId": holding_id
            },
            upsert=True
        )

    def remove(self, dni: str) -> bool:
        return self.collection.delete_one({"_id": dni}).deleted_count > 0

    def list_entries(self) -> List[dict]:
        return serialize_docs(self.collection.find({}).sort("addedAt", -1))


def has_hire_history(applications: List[dict]) -> Dict[str, Any]:
    """Re-entry detection: was the candidate hired through any earlier application?"""
    hired = [app for app in (applications or []) if app.get("hiredStatus") == "hired"]
    if hired:
        return {"isReentry": True, "lastHire": hired[-1]}
    return {"isReentry": False, "lastHire": None}


# ============================================================
# CALENDAR CONNECTIONS (keyed by staff user id)
# ============================================================

class CalendarConnectionService:
    def __init__(self):
        self.collection: Collection = get_collection("calendar_connections")

    def get(self, user_id: str) -> Optional[dict]:
        return serialize_doc(self.collection.find_one({"_id": user_id}))

    def save(self, user_id: str, connection: dict) -> None:
        now = datetime.utcnow()
        self.collection.replace_one(
            {"_id": user_id},
            {"_id": user_id, **connection, "connectedAt": now, "updatedAt": now},
            upsert=True
        )

    def update_tokens(self, user_id: str, access_token: str, expires_at: int) -> None:
        self.collection.update_one(
            {"_id": user_id},
            {"$set": {
                "accessToken": access_token,
                "expiresAt": expires_at,
                "updatedAt": datetime.utcnow()
            }}
        )


# ============================================================
# EMAIL LOG
# ============================================================

class EmailLogService:
    def __init__(self):
        self.collection: Collection = get_collection("email_log")

    def record(self, to: str, subject: str, template: str, status: str, provider_id: str = None) -> None:
        self.collection.insert_one({
            "to": to,
            "subject": subject,
            "template": template,
            "status": status,
            "providerId": provider_id,
            "sentAt": datetime.utcnow()
        })
