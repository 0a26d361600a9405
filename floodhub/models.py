# ================================
# FILE: floodhub/models.py
# ================================
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float, Date, JSON, ForeignKey,
)
from floodhub.database import Base
from floodhub.utils import utcnow

ROLES = ("resident", "rescuer", "mdrrmo_admin", "barangay_official")
SEVERITIES = ("medium", "high", "critical")
REQUEST_STATUSES = ("pending", "assigned", "in_progress", "completed", "cancelled")
ALERT_PRIORITIES = ("informational", "warning", "critical")
EQUIPMENT_CONDITIONS = ("excellent", "good", "fair", "poor")
SPECIAL_NEEDS = ("elderly", "pwd", "pregnant", "infant", "medical", "pet")


class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Profile(Base):
    __tablename__ = 'profiles'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), unique=True, nullable=False)

    full_name      = Column(String, nullable=False, default="")
    phone_number   = Column(String, nullable=True)
    address        = Column(String, nullable=True)
    barangay_zone  = Column(String, nullable=True)

    # written by the location tracker
    last_known_lat = Column(Float, nullable=True)
    last_known_lng = Column(Float, nullable=True)
    last_active_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class UserRole(Base):
    __tablename__ = 'user_roles'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), unique=True, nullable=False)
    role = Column(String, nullable=False, default="resident")  # see ROLES
    assigned_zone = Column(String, nullable=True)
    assigned_evacuation_center_id = Column(Integer, ForeignKey('evacuation_centers.id', ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RescueRequest(Base):
    __tablename__ = 'rescue_requests'
    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    severity = Column(String, nullable=False, default="high")       # medium/high/critical
    status   = Column(String, nullable=False, default="pending", index=True)
    is_quick_sos = Column(Boolean, nullable=False, default=False)

    household_count = Column(Integer, nullable=False, default=1)
    special_needs   = Column(JSON, nullable=True)                    # list of tags or None
    situation_description = Column(Text, nullable=True)

    location_lat     = Column(Float, nullable=True)
    location_lng     = Column(Float, nullable=True)
    location_address = Column(String, nullable=True)

    assigned_rescuer_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    priority_score      = Column(Integer, nullable=False, default=50)
    completion_notes    = Column(Text, nullable=True)

    created_at   = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at   = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class EvacuationCenter(Base):
    __tablename__ = 'evacuation_centers'
    id = Column(Integer, primary_key=True, index=True)
    name    = Column(String, nullable=False)
    address = Column(String, nullable=False, default="")
    location_lat = Column(Float, nullable=True)
    location_lng = Column(Float, nullable=True)

    max_capacity      = Column(Integer, nullable=False, default=100)
    current_occupancy = Column(Integer, nullable=False, default=0)
    status            = Column(String, nullable=False, default="operational")
    supplies_status   = Column(String, nullable=False, default="adequate")
    assigned_official_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Evacuee(Base):
    __tablename__ = 'evacuees'
    id = Column(Integer, primary_key=True, index=True)
    family_name    = Column(String, nullable=False)
    adults_count   = Column(Integer, nullable=False, default=1)
    children_count = Column(Integer, nullable=False, default=0)
    home_address   = Column(String, nullable=True)
    contact_number = Column(String, nullable=True)
    special_needs  = Column(JSON, nullable=True)

    evacuation_center_id = Column(Integer, ForeignKey('evacuation_centers.id', ondelete="SET NULL"), nullable=True, index=True)
    registered_by        = Column(Integer, ForeignKey('users.id'), nullable=True)

    checked_in_at  = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)


class WeatherAlert(Base):
    __tablename__ = 'weather_alerts'
    id = Column(Integer, primary_key=True, index=True)
    title    = Column(String, nullable=False)
    message  = Column(Text, nullable=False)
    priority = Column(String, nullable=False, default="informational")
    target_zones = Column(JSON, nullable=True)  # None/[] = every zone
    created_by   = Column(Integer, ForeignKey('users.id'), nullable=True)
    expires_at   = Column(DateTime(timezone=True), nullable=True)
    is_active    = Column(Boolean, nullable=False, default=True)
    created_at   = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class WeatherForecast(Base):
    __tablename__ = 'weather_forecast'
    id = Column(Integer, primary_key=True, index=True)
    forecast_date    = Column(Date, unique=True, nullable=False)
    temperature_high = Column(Float, nullable=True)
    temperature_low  = Column(Float, nullable=True)
    condition        = Column(String, nullable=False)
    description      = Column(String, nullable=True)
    humidity         = Column(Integer, nullable=True)
    wind_speed       = Column(Float, nullable=True)
    precipitation_chance = Column(Integer, nullable=True)
    icon_code        = Column(String, nullable=True)
    updated_at       = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class RescuerEquipment(Base):
    __tablename__ = 'rescuer_equipment'
    id = Column(Integer, primary_key=True, index=True)
    rescuer_id     = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    equipment_name = Column(String, nullable=False)
    quantity       = Column(Integer, nullable=False, default=1)
    condition      = Column(String, nullable=False, default="good")
    last_updated   = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class FloodZone(Base):
    __tablename__ = 'flood_zones'
    id = Column(Integer, primary_key=True, index=True)
    zone_name = Column(String, nullable=False)
    risk_level = Column(String, nullable=False, default="low")
    current_water_level = Column(Float, nullable=False, default=0.0)
    last_reading_at = Column(DateTime(timezone=True), nullable=True)
    polygon_coordinates = Column(JSON, nullable=True)
