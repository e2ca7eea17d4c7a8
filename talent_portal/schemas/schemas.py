"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Stored documents stay loosely typed; these models only guard the HTTP edge.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    super_admin = "super_admin"
    admin = "admin"
    jefe_marca = "jefe_marca"
    supervisor = "supervisor"
    store_manager = "store_manager"
    recruiter = "recruiter"


class Categoria(str, Enum):
    operativo = "operativo"
    gerencial = "gerencial"


class KQType(str, Enum):
    boolean = "boolean"
    select = "select"
    text = "text"


class ApplicationAction(str, Enum):
    approve = "approve"
    reject = "reject"
    cul = "cul"


class ValidationType(str, Enum):
    dni_verification = "dni_verification"
    cul_validation = "cul_validation"


# ============================================================
# COMMON
# ============================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str


class Coordinates(BaseModel):
    lat: float
    lng: float


# ============================================================
# AUTH SCHEMAS
# ============================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str


class ResetPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordConfirm(BaseModel):
    token: str
    password: str = Field(..., min_length=8)


# ============================================================
# TENANT SCHEMAS
# ============================================================

class HoldingCreate(BaseModel):
    nombre: str = Field(..., min_length=2)
    slug: Optional[str] = None
    logoUrl: Optional[str] = None
    linkedinCompanyId: Optional[str] = None
    recruiterEmail: Optional[EmailStr] = None


class MarcaCreate(BaseModel):
    holdingId: str
    nombre: str = Field(..., min_length=1)
    slug: Optional[str] = None
    code: Optional[str] = None
    logo: Optional[str] = None
    photo: Optional[str] = None


class TiendaCreate(BaseModel):
    marcaId: str
    nombre: str = Field(..., min_length=1)
    slug: Optional[str] = None
    distrito: Optional[str] = None
    direccion: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole
    displayName: Optional[str] = None
    holdingId: Optional[str] = None
    assignedMarca: Optional[Dict[str, Any]] = None
    assignedStore: Optional[Dict[str, Any]] = None
    assignedStores: List[Dict[str, Any]] = []
    availability: Optional[Dict[str, Any]] = None


class BlacklistAdd(BaseModel):
    dni: str = Field(..., min_length=8)
    nombre: str
    motivo: str
    holdingId: Optional[str] = None


# ============================================================
# JOB PROFILE / KQ SCHEMAS
# ============================================================

class KillerQuestion(BaseModel):
    id: str
    question: str
    type: KQType = KQType.boolean
    options: List[str] = []
    requiredAnswer: Optional[Any] = None
    isRequired: bool = True


class JobProfileCreate(BaseModel):
    posicion: str = Field(..., min_length=2)
    modalidad: str = "Full Time"
    turno: Optional[str] = None
    categoria: Categoria = Categoria.operativo
    descripcion: Optional[str] = None
    requisitos: Any = None
    salario: Optional[float] = None
    beneficios: List[str] = []
    holdingId: Optional[str] = None
    marcaIds: List[str] = []
    killerQuestions: List[KillerQuestion] = []


class KillerQuestionsUpdate(BaseModel):
    killerQuestions: List[KillerQuestion]


class KQValidationRequest(BaseModel):
    answers: Dict[str, Any] = {}


# ============================================================
# RQ SCHEMAS
# ============================================================

class RQCreate(BaseModel):
    jobProfileId: str
    tiendaId: str
    numVacantes: int = Field(1, ge=1, le=50)
    motivo: Optional[str] = None


class RQReject(BaseModel):
    reason: str = Field(..., min_length=1)


class RQBulkApprove(BaseModel):
    rqIds: List[str]


class RQBulkReject(BaseModel):
    rqIds: List[str]
    reason: str = Field(..., min_length=1)


# ============================================================
# CANDIDATE SCHEMAS (recruiter side)
# ============================================================

class ValidationUpdate(BaseModel):
    updateType: ValidationType
    data: Dict[str, Any]


class ApplicationStatusUpdate(BaseModel):
    action: ApplicationAction
    reason: Optional[str] = None
    cul_resultado: Optional[str] = None
    sendEmail: bool = False


class MarkHired(BaseModel):
    applicationId: str
    startDate: datetime


class MarkNotHired(BaseModel):
    applicationId: str
    reason: str


class CleanReingreso(BaseModel):
    dni: str


# ============================================================
# PORTAL SCHEMAS (candidate side)
# ============================================================

class CheckUserRequest(BaseModel):
    email: str


class PortalRegister(BaseModel):
    # Required fields are checked by the service so the portal gets its own message
    email: Optional[str] = None
    nombre: Optional[str] = None
    apellidos: Optional[str] = None
    celular: Optional[str] = None
    dni: Optional[str] = None
    departamento: Optional[str] = None
    provincia: Optional[str] = None
    distrito: Optional[str] = None
    direccion: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    formattedAddress: Optional[str] = None
    holdingSlug: Optional[str] = None
    cvUrl: Optional[str] = None


class MagicLinkRequest(BaseModel):
    email: str


class TokenRequest(BaseModel):
    token: str


class PortalApply(BaseModel):
    candidateId: Optional[str] = None
    rqId: Optional[str] = None
    sessionToken: Optional[str] = None
    kqAnswers: Dict[str, Any] = {}
    kqPassed: Optional[bool] = None
    isGeoMatch: Optional[bool] = None
    matchScore: Optional[float] = None


class BookInterview(BaseModel):
    sessionToken: Optional[str] = None
    rqId: Optional[str] = None
    applicationId: Optional[str] = None
    slotId: Optional[str] = None
    slotDate: Optional[str] = None
    slotTime: Optional[str] = None


class NotifyRescue(BaseModel):
    candidateId: str
    applicationId: str
    rqId: str
    posicion: str = ""


# ============================================================
# EMAIL SCHEMAS
# ============================================================

class EmailRequest(BaseModel):
    to: Optional[str] = None
    nombre: Optional[str] = None
    posicion: Optional[str] = None
    company: Optional[str] = None
    marca: Optional[str] = None
    tienda: Optional[str] = None
    link: Optional[str] = None
    start_date: Optional[str] = None


# ============================================================
# CALENDAR SCHEMAS
# ============================================================

class Attendee(BaseModel):
    email: str
    name: Optional[str] = None


class CalendarEventRequest(BaseModel):
    userId: str
    title: str
    description: str = ""
    startTime: str
    endTime: str
    attendees: List[Attendee] = []
    location: Optional[str] = None


# ============================================================
# AI SCHEMAS
# ============================================================

class CVMatchRequest(BaseModel):
    cvContent: str
    jdContent: str


class MatchCandidateRequest(BaseModel):
    jobProfile: Dict[str, Any]
    candidateData: Dict[str, Any]
    killerAnswers: Optional[Any] = None


class GenerateJDRequest(BaseModel):
    titulo: str
    descripcionBase: str = ""
    jdsSimilares: List[str] = []


class ParseCVRequest(BaseModel):
    cvText: str


# ============================================================
# TALENT PIPELINE SCHEMAS
# ============================================================

class ProcessCandidateRequest(BaseModel):
    candidateId: str
    force: bool = False


class RecoverCandidateRequest(BaseModel):
    candidateId: str


class RequestCULRequest(BaseModel):
    applicationIds: List[str]
    holdingId: Optional[str] = None


class BookingRequestCreate(BaseModel):
    candidateId: Optional[str] = None
    candidateName: str = ""
    candidateEmail: EmailStr
    jobId: Optional[str] = None
    jobTitle: str = ""
    holdingId: Optional[str] = None
    interviewerId: str
    interviewerName: str = ""
    interviewerEmail: Optional[str] = None


class BookSlotRequest(BaseModel):
    requestId: str
    startTime: datetime
    duration: Optional[int] = Field(None, gt=0, le=480)


class AvailabilityRequest(BaseModel):
    requestId: str
