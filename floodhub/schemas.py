# ================================
# FILE: floodhub/schemas.py
# ================================
from datetime import date, datetime
from typing import Literal, Optional, List
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["resident", "rescuer", "mdrrmo_admin", "barangay_official"]
Severity = Literal["medium", "high", "critical"]
AlertPriority = Literal["informational", "warning", "critical"]
Condition = Literal["excellent", "good", "fair", "poor"]
SpecialNeed = Literal["elderly", "pwd", "pregnant", "infant", "medical", "pet"]
CenterStatus = Literal["operational", "full", "closed"]
SuppliesStatus = Literal["adequate", "low", "critical"]
GeoErrorCode = Literal["permission_denied", "position_unavailable", "timeout"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Auth / profile ---

class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=6)
    full_name: str


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    barangay_zone: Optional[str] = None


class ProfileOut(ORMModel):
    user_id: int
    full_name: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    barangay_zone: Optional[str] = None
    last_known_lat: Optional[float] = None
    last_known_lng: Optional[float] = None
    last_active_at: Optional[datetime] = None


class RoleUpdate(BaseModel):
    role: Role
    assigned_zone: Optional[str] = None
    assigned_evacuation_center_id: Optional[int] = None


# --- Geolocation ---

class PositionIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = None
    timestamp: Optional[float] = None  # epoch ms


class LocationReport(PositionIn):
    forced: bool = False  # tab refocus; bypasses the throttle window


# --- Rescue requests ---

class RescueRequestCreate(BaseModel):
    is_quick_sos: bool = False
    severity: Severity = "high"
    household_count: int = Field(default=1, ge=1)
    special_needs: List[SpecialNeed] = Field(default_factory=list)
    situation_description: Optional[str] = None
    address: Optional[str] = None
    position: Optional[PositionIn] = None
    position_error: Optional[GeoErrorCode] = None


class RescueRequestOut(ORMModel):
    id: int
    requester_id: Optional[int] = None
    severity: str
    status: str
    is_quick_sos: bool
    household_count: int
    special_needs: Optional[List[str]] = None
    situation_description: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    location_address: Optional[str] = None
    assigned_rescuer_id: Optional[int] = None
    priority_score: int
    completion_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class AssignRequest(BaseModel):
    rescuer_id: int


class CompleteRequest(BaseModel):
    completion_notes: Optional[str] = None


# --- Centers / evacuees ---

class CenterCreate(BaseModel):
    name: str = Field(min_length=1)
    address: str = ""
    location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    max_capacity: int = Field(default=100, ge=1)
    assigned_official_id: Optional[int] = None


class CenterUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    max_capacity: Optional[int] = Field(default=None, ge=1)
    status: Optional[CenterStatus] = None
    supplies_status: Optional[SuppliesStatus] = None
    assigned_official_id: Optional[int] = None


class OccupancyAdjust(BaseModel):
    delta: int


class CenterOut(ORMModel):
    id: int
    name: str
    address: str
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    max_capacity: int
    current_occupancy: int
    status: str
    supplies_status: str
    assigned_official_id: Optional[int] = None
    occupancy_pct: int = 0
    occupancy_level: str = "available"
    available_spaces: int = 0


class EvacueeCreate(BaseModel):
    family_name: str = Field(min_length=1)
    adults_count: int = Field(default=1, ge=0)
    children_count: int = Field(default=0, ge=0)
    home_address: Optional[str] = None
    contact_number: Optional[str] = None
    special_needs: List[SpecialNeed] = Field(default_factory=list)


class EvacueeOut(ORMModel):
    id: int
    family_name: str
    adults_count: int
    children_count: int
    home_address: Optional[str] = None
    contact_number: Optional[str] = None
    special_needs: Optional[List[str]] = None
    evacuation_center_id: Optional[int] = None
    checked_in_at: datetime
    checked_out_at: Optional[datetime] = None
    registered_by: Optional[int] = None


# --- Alerts / weather / zones ---

class AlertCreate(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    priority: AlertPriority = "informational"
    target_zones: Optional[List[str]] = None
    expires_at: Optional[datetime] = None


class AlertOut(ORMModel):
    id: int
    title: str
    message: str
    priority: str
    target_zones: Optional[List[str]] = None
    created_by: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime


class ForecastIn(BaseModel):
    forecast_date: date
    temperature_high: Optional[float] = None
    temperature_low: Optional[float] = None
    condition: str
    description: Optional[str] = None
    humidity: Optional[int] = Field(default=None, ge=0, le=100)
    wind_speed: Optional[float] = None
    precipitation_chance: Optional[int] = Field(default=None, ge=0, le=100)
    icon_code: Optional[str] = None


class ForecastOut(ORMModel, ForecastIn):
    id: int


class FloodZoneOut(ORMModel):
    id: int
    zone_name: str
    risk_level: str
    current_water_level: float
    last_reading_at: Optional[datetime] = None
    polygon_coordinates: Optional[list | dict] = None


# --- Equipment ---

class EquipmentIn(BaseModel):
    equipment_name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=0)
    condition: Condition = "good"


class EquipmentOut(ORMModel):
    id: int
    rescuer_id: int
    equipment_name: str
    quantity: int
    condition: str
    last_updated: datetime
