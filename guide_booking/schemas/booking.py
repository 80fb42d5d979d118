from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, confloat, conint, model_validator

from guide_booking.db.models.booking import BookingStatus, PaymentStatus, TransactionStatus

# ActivityIn has a field called "date"
Day = date


# --- NESTED INPUT ---
class AddressIn(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str


class CustomerIn(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    phone: Optional[str] = None
    avatar: Optional[str] = None
    nationality: Optional[str] = None
    address: Optional[AddressIn] = None


class EntityRef(BaseModel):
    id: int
    name: Optional[str] = None


class DateRange(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class Travelers(BaseModel):
    adults: conint(ge=0) = 1
    children: conint(ge=0) = 0
    infants: conint(ge=0) = 0

    @model_validator(mode="after")
    def check_total(self):
        if self.adults + self.children + self.infants < 1:
            raise ValueError("at least one traveler is required")
        return self


class TransactionIn(BaseModel):
    amount: confloat(gt=0)
    method: str
    status: TransactionStatus = TransactionStatus.pending
    date: datetime


class PaymentIn(BaseModel):
    total_amount: confloat(gt=0)
    currency: str = "USD"
    status: PaymentStatus = PaymentStatus.pending
    deposit_amount: Optional[confloat(ge=0)] = None
    deposit_paid: bool = False
    balance_due_date: Optional[date] = None
    transactions: List[TransactionIn] = []


class AccommodationIn(BaseModel):
    type: str
    name: Optional[str] = None
    location: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None


class TransportationIn(BaseModel):
    type: str
    details: Optional[str] = None
    departure_date: Optional[datetime] = None
    departure_location: Optional[str] = None
    arrival_date: Optional[datetime] = None
    arrival_location: Optional[str] = None


class ActivityIn(BaseModel):
    name: str
    date: Optional[Day] = None
    duration: Optional[str] = None
    included: bool = True


class EquipmentRentalIn(BaseModel):
    item: str
    quantity: conint(gt=0)
    price_per_unit: confloat(ge=0)


class DocumentIn(BaseModel):
    type: str
    name: str
    url: str
    upload_date: datetime


class NoteIn(BaseModel):
    content: str
    date: datetime
    author: str


class EmergencyContactIn(BaseModel):
    contact_name: str
    relationship: str
    phone: str
    email: Optional[EmailStr] = None


# --- CREATE ---
class BookingCreate(BaseModel):
    status: BookingStatus = BookingStatus.pending
    customer: CustomerIn
    destination: EntityRef
    guide: Optional[EntityRef] = None
    dates: DateRange
    duration: Optional[conint(gt=0)] = None
    travelers: Travelers
    payment: PaymentIn
    special_requests: List[str] = []
    accommodations: List[AccommodationIn] = []
    transportation: List[TransportationIn] = []
    activities: List[ActivityIn] = []
    equipment_rental: List[EquipmentRentalIn] = []
    documents: List[DocumentIn] = []
    notes: List[NoteIn] = []
    emergency: Optional[EmergencyContactIn] = None


# --- UPDATE (partial) ---
class DateRangeUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TravelersUpdate(BaseModel):
    adults: Optional[conint(ge=0)] = None
    children: Optional[conint(ge=0)] = None
    infants: Optional[conint(ge=0)] = None


class PaymentUpdate(BaseModel):
    total_amount: Optional[confloat(gt=0)] = None
    currency: Optional[str] = None
    status: Optional[PaymentStatus] = None
    deposit_amount: Optional[confloat(ge=0)] = None
    deposit_paid: Optional[bool] = None
    balance_due_date: Optional[date] = None


class BookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    guide: Optional[EntityRef] = None
    dates: Optional[DateRangeUpdate] = None
    duration: Optional[conint(gt=0)] = None
    travelers: Optional[TravelersUpdate] = None
    payment: Optional[PaymentUpdate] = None
    special_requests: Optional[List[str]] = None
    accommodations: Optional[List[AccommodationIn]] = None
    transportation: Optional[List[TransportationIn]] = None
    activities: Optional[List[ActivityIn]] = None
    equipment_rental: Optional[List[EquipmentRentalIn]] = None
    documents: Optional[List[DocumentIn]] = None
    notes: Optional[List[NoteIn]] = None
    emergency: Optional[EmergencyContactIn] = None


# --- RESPONSE ---
class CustomerSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    nationality: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    class Config:
        from_attributes = True


class DestinationSummary(BaseModel):
    id: int
    name: str
    country: str
    region: Optional[str] = None

    class Config:
        from_attributes = True


class GuideSummary(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class AccommodationResponse(AccommodationIn):
    id: int

    class Config:
        from_attributes = True


class TransportationResponse(TransportationIn):
    id: int

    class Config:
        from_attributes = True


class ActivityResponse(ActivityIn):
    id: int

    class Config:
        from_attributes = True


class EquipmentRentalResponse(EquipmentRentalIn):
    id: int

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: int
    amount: float
    method: str
    status: str
    date: datetime

    class Config:
        from_attributes = True


class DocumentResponse(DocumentIn):
    id: int

    class Config:
        from_attributes = True


class NoteResponse(NoteIn):
    id: int

    class Config:
        from_attributes = True


class EmergencyContactResponse(BaseModel):
    id: int
    contact_name: str
    relationship: str
    phone: str
    email: Optional[str] = None

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    status: str
    start_date: date
    end_date: date
    duration: int
    adults_count: int
    children_count: int
    infants_count: int
    total_travelers: int
    total_amount: float
    currency: str
    payment_status: str
    deposit_amount: Optional[float] = None
    deposit_paid: bool
    balance_due_date: Optional[date] = None
    special_requests: List[str] = []

    customer: CustomerSummary
    destination: DestinationSummary
    guide: Optional[GuideSummary] = None

    accommodations: List[AccommodationResponse] = []
    transportation: List[TransportationResponse] = []
    activities: List[ActivityResponse] = []
    equipment_rentals: List[EquipmentRentalResponse] = []
    transactions: List[TransactionResponse] = []
    documents: List[DocumentResponse] = []
    notes: List[NoteResponse] = []
    emergency_contact: Optional[EmergencyContactResponse] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    items: List[BookingResponse]
    total: int


class MonthCount(BaseModel):
    month: int
    count: int


class TopDestination(BaseModel):
    id: int
    name: Optional[str]
    country: Optional[str]
    bookings: int


class BookingStatsResponse(BaseModel):
    total_bookings: int
    bookings_by_status: dict
    total_revenue: float
    bookings_by_month: List[MonthCount]
    bookings_this_month: int
    bookings_last_month: int
    monthly_growth_rate: float
    average_booking_value: float
    top_destinations: List[TopDestination]
