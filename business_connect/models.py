"""Database models for the Business Connect backend."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from .extensions import db

BUSINESS_CATEGORIES = (
    "Coffee & Beverages",
    "Technology Repair",
    "Automotive Services",
    "Home Services",
    "Food & Dining",
    "Health & Fitness",
    "Beauty & Spa",
    "Education & Training",
    "Professional Services",
    "Retail & Shopping",
    "",
)

BUSINESS_THEMES = ("light", "dark", "blue", "green", "")

USER_ROLES = ("user", "business_owner", "admin")

ACTIVITY_TYPES = (
    "profile_update",
    "business_create",
    "business_update",
    "business_delete",
    "service_add",
    "service_update",
    "service_delete",
    "product_add",
    "product_update",
    "product_delete",
    "review_create",
)

ENTITY_KINDS = ("Business", "Service", "Product", "Review")

DEFAULT_PREFERENCES = {
    "theme": "system",
    "notifications": {"email": True, "push": False, "sms": False},
}


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def average_rating(total: int, count: int) -> float:
    """Mean of ``count`` ratings summing to ``total``, rounded half-up to one decimal."""
    if not count:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    # Stored lower-cased, so the unique index is case-insensitive.
    username = db.Column(db.String(50), unique=True, nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30), nullable=False, default="")
    role = db.Column(
        db.Enum(*USER_ROLES, name="user_role", native_enum=False, validate_strings=True),
        nullable=False,
        default="user",
    )
    profile_picture = db.Column(db.String(500))
    cover_image = db.Column(db.String(500))
    location = db.Column(db.String(255), nullable=False, default="")
    website = db.Column(db.String(255), nullable=False, default="")
    bio = db.Column(db.Text, nullable=False, default="")
    preferences = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    sessions = db.relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserSession.session_id",
    )
    businesses = db.relationship("Business", back_populates="owner", lazy="dynamic")

    def merged_preferences(self) -> dict[str, object]:
        stored = self.preferences or {}
        notifications = dict(DEFAULT_PREFERENCES["notifications"])
        notifications.update(stored.get("notifications") or {})
        return {
            "theme": stored.get("theme") or DEFAULT_PREFERENCES["theme"],
            "notifications": notifications,
        }

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "role": self.role,
        }

    def to_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data.update({
            "phone": self.phone,
            "preferences": self.merged_preferences(),
            "profilePicture": self.profile_picture,
            "coverImage": self.cover_image,
            "location": self.location,
            "website": self.website,
            "bio": self.bio,
        })
        return data


class UserSession(db.Model):
    """An active login; deleting the row revokes its token."""

    __tablename__ = "user_sessions"

    session_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    device = db.Column(db.String(255), nullable=False, default="Unknown Device")
    ip = db.Column(db.String(64), nullable=False, default="Unknown")
    location = db.Column(db.String(255), nullable=False, default="Unknown")
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    last_active = db.Column(db.DateTime, nullable=False, default=utc_now)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", back_populates="sessions")

    def to_dict(self, current_hash: str | None = None) -> dict[str, object]:
        return {
            "id": self.session_id,
            "device": self.device,
            "ip": self.ip,
            "location": self.location,
            "lastActive": _iso(self.last_active),
            "isCurrent": current_hash is not None and current_hash == self.token_hash,
        }


class Business(db.Model):
    __tablename__ = "businesses"

    business_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    icon = db.Column(db.String(100), nullable=False, default="")
    custom_icon = db.Column(db.String(500))
    contact_phone = db.Column(db.String(30), nullable=False)
    contact_email = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    page_name = db.Column(db.String(100), nullable=False)
    # Lower-cased page_name; the unique index makes the slug case-insensitive.
    page_name_key = db.Column(db.String(100), unique=True, nullable=False)
    theme = db.Column(
        db.Enum(*BUSINESS_THEMES, name="business_theme", native_enum=False, validate_strings=True),
        nullable=False,
        default="",
    )
    description = db.Column(db.Text, nullable=False, default="")
    website = db.Column(db.String(255), nullable=False, default="")
    category = db.Column(
        db.Enum(*BUSINESS_CATEGORIES, name="business_category", native_enum=False, validate_strings=True),
        nullable=False,
        default="",
    )
    services = db.Column(db.JSON, nullable=False, default=list)
    products = db.Column(db.JSON, nullable=False, default=dict)
    hours = db.Column(db.JSON, nullable=False, default=dict)
    images = db.Column(db.JSON, nullable=False, default=list)
    is_open = db.Column(db.Boolean, nullable=False, default=True)
    rating_total = db.Column(db.Integer, nullable=False, default=0)
    review_count = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __mapper_args__ = {"version_id_col": version}

    owner = db.relationship("User", back_populates="businesses")

    @property
    def rating(self) -> float:
        return average_rating(self.rating_total or 0, self.review_count or 0)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.business_id,
            "ownerId": self.owner_id,
            "name": self.name,
            "icon": self.icon,
            "customIcon": self.custom_icon,
            "contact": {"phone": self.contact_phone, "email": self.contact_email},
            "location": self.location,
            "pageName": self.page_name,
            "theme": self.theme,
            "description": self.description,
            "website": self.website,
            "category": self.category,
            "services": list(self.services or []),
            "products": {key: list(items) for key, items in (self.products or {}).items()},
            "hours": dict(self.hours or {}),
            "images": list(self.images or []),
            "isOpen": bool(self.is_open),
            "rating": self.rating,
            "reviewCount": self.review_count or 0,
            "version": self.version,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def to_dict_listing(self) -> dict[str, object]:
        """Reduced projection served by the public catalog."""
        images = list(self.images or [])
        return {
            "id": self.business_id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "customIcon": self.custom_icon,
            "theme": self.theme,
            "location": self.location,
            "services": list(self.services or []),
            "products": {key: list(items) for key, items in (self.products or {}).items()},
            "rating": self.rating,
            "reviewCount": self.review_count or 0,
            "images": images,
            "image": images[0] if images else "",
            "isOpen": bool(self.is_open),
            "category": self.category or "",
        }


class Review(db.Model):
    """One review per (business, user)."""

    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint("business_id", "user_id", name="uq_review_business_user"),
    )

    review_id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.business_id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    user_name = db.Column(db.String(100), nullable=False)
    user_avatar = db.Column(db.String(500), nullable=False, default="")
    rating = db.Column(db.Integer, nullable=False)  # 1-5 stars
    comment = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    author = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.review_id,
            "businessId": self.business_id,
            "userId": self.user_id,
            "userName": self.author.name if self.author else self.user_name,
            "userAvatar": self.user_avatar,
            "rating": self.rating,
            "comment": self.comment,
            "date": _iso(self.created_at),
        }


class Analytics(db.Model):
    __tablename__ = "analytics"

    analytics_id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(
        db.Integer, db.ForeignKey("businesses.business_id"), unique=True, nullable=False
    )
    profile_views = db.Column(db.Integer, nullable=False, default=0)
    inquiries = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "businessId": self.business_id,
            "profileViews": self.profile_views,
            "inquiries": self.inquiries,
            "lastUpdated": _iso(self.last_updated),
        }


class Activity(db.Model):
    """Append-only audit entry for a user-initiated mutation."""

    __tablename__ = "activities"

    activity_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    type = db.Column(
        db.Enum(*ACTIVITY_TYPES, name="activity_type", native_enum=False, validate_strings=True),
        nullable=False,
    )
    description = db.Column(db.Text, nullable=False)
    # Not a foreign key: entries outlive the business they describe.
    business_id = db.Column(db.Integer, nullable=True, index=True)
    entity_kind = db.Column(
        db.Enum(*ENTITY_KINDS, name="activity_entity_kind", native_enum=False, validate_strings=True),
        nullable=True,
    )
    entity_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        entity = None
        if self.entity_kind:
            entity = {"kind": self.entity_kind, "id": self.entity_id}
        return {
            "id": self.activity_id,
            "userId": self.user_id,
            "type": self.type,
            "description": self.description,
            "businessId": self.business_id,
            "entity": entity,
            "createdAt": _iso(self.created_at),
        }
