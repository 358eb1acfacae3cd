"""
Database Schemas for the Scholar / Student Assistant Management System

Each Pydantic model represents a collection in MongoDB.
Collection name = snake_case of class name (e.g., User -> "user",
ScholarRequest -> "scholar_request"). References between collections are
stored as string ids.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["student", "hr", "office"]
Position = Literal["student_assistant", "student_marshal"]
ScholarType = Literal["student_assistant", "student_marshal"]
NotificationType = Literal["success", "warning", "error", "info"]
Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class User(BaseModel):
    firstname: str
    lastname: str
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="Hashed password")
    role: Role = "student"
    # applicant -> trainee -> SA (student assistant) / SM (student marshal)
    status: Literal["applicant", "trainee", "SA", "SM"] = "applicant"
    office_name: Optional[str] = None  # office users only


class TimelineEntry(BaseModel):
    action: str
    performed_by: str
    performed_by_name: str
    timestamp: datetime
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None


class Application(BaseModel):
    user_id: str
    position: Position

    # Personal information
    firstname: str
    lastname: str
    email: EmailStr
    age: int = Field(..., ge=15, le=30)
    gender: Literal["Male", "Female", "Other"]
    civil_status: Literal["Single", "Married", "Widowed", "Separated"]
    home_address: str
    baguio_address: Optional[str] = None
    home_contact: str
    baguio_contact: Optional[str] = None
    citizenship: str = "Filipino"
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    emergency_contact: str
    emergency_contact_number: str
    college: Optional[str] = None
    course_year: Optional[str] = None
    agreed_to_terms: bool

    status: str = "pending"
    hr_comments: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    # Psychometric test
    psychometric_test_date: Optional[datetime] = None
    psychometric_test_time: Optional[str] = None
    psychometric_test_location: Optional[str] = None
    psychometric_test_link: Optional[str] = None
    psychometric_test_notes: Optional[str] = None
    psychometric_scheduled_at: Optional[datetime] = None
    psychometric_test_score: Optional[float] = None
    psychometric_test_passed: Optional[bool] = None
    psychometric_completed_at: Optional[datetime] = None

    # Interview
    interview_date: Optional[datetime] = None
    interview_time: Optional[str] = None
    interview_location: Optional[str] = None
    interview_mode: Optional[Literal["in-person", "virtual", "phone"]] = None
    interview_link: Optional[str] = None
    interview_notes: Optional[str] = None
    interview_scheduled_at: Optional[datetime] = None
    interview_score: Optional[int] = None
    interview_passed: Optional[bool] = None
    interview_completed_at: Optional[datetime] = None

    # Training
    trainee_start_date: Optional[datetime] = None
    trainee_end_date: Optional[datetime] = None
    trainee_office: Optional[str] = None
    trainee_notes: Optional[str] = None
    required_hours: Optional[int] = None
    completed_hours: Optional[float] = None
    trainee_performance_rating: Optional[int] = Field(default=None, ge=1, le=5)

    rejection_reason: Optional[str] = None
    timeline: List[TimelineEntry] = Field(default_factory=list)


class ArchivedApplication(BaseModel):
    original_application_id: str
    user_id: str
    position: Position
    original_status: str
    original_application: dict
    archived_reason: str
    archived_by: Optional[str] = None
    archived_at: datetime


class Scholar(BaseModel):
    user_id: str
    application_id: str
    scholar_office: str
    scholar_type: ScholarType
    status: Literal["active", "inactive", "completed"] = "active"
    deployed_by: str
    deployed_at: datetime
    scholar_notes: Optional[str] = None
    performance_rating: Optional[int] = Field(default=None, ge=1, le=5)
    semester_start_date: Optional[datetime] = None
    semester_months: int = 6


class DutyHour(BaseModel):
    day: Weekday
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    location: Optional[str] = None
    notes: Optional[str] = None


class Schedule(BaseModel):
    user_id: str
    user_type: Literal["trainee", "scholar"] = "trainee"
    application_id: Optional[str] = None
    scholar_id: Optional[str] = None
    class_schedule: Optional[str] = None  # uploaded file URL
    class_schedule_data: list = Field(default_factory=list)
    duty_hours: List[DutyHour] = Field(default_factory=list)
    uploaded_at: Optional[datetime] = None
    last_modified_by: Optional[str] = None
    last_modified_at: Optional[datetime] = None


class ServicePeriod(BaseModel):
    start_date: datetime
    end_date: datetime
    months: int
    scholar_type: ScholarType


class UserData(BaseModel):
    user_id: str
    gender: Optional[str] = None
    birthdate: Optional[datetime] = None
    civil_status: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    college: Optional[str] = None
    course_year: Optional[str] = None
    service_months: int = 0
    service_periods: List[ServicePeriod] = Field(default_factory=list)
    effectivity_date: Optional[datetime] = None


class DTREntry(BaseModel):
    day: int = Field(..., ge=1, le=31)
    in1: Optional[str] = None
    out1: Optional[str] = None
    in2: Optional[str] = None
    out2: Optional[str] = None
    late: int = 0
    undertime: int = 0
    total_hours: int = 0  # minutes
    status: Optional[str] = None
    confirmation_status: Literal["unconfirmed", "confirmed"] = "unconfirmed"
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    excused_status: Literal["none", "excused"] = "none"
    excused_reason: Optional[str] = None
    edit_history: list = Field(default_factory=list)


class DTR(BaseModel):
    user_id: str
    month: int = Field(..., ge=1, le=12)
    year: int
    entries: List[DTREntry] = Field(default_factory=list)
    status: Literal["draft", "submitted", "approved", "rejected"] = "draft"
    remarks: Optional[str] = None
    checked_by: Optional[str] = None
    checked_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    total_monthly_hours: int = 0  # minutes


class Leave(BaseModel):
    user_id: str
    name: str
    school_dept: str
    course_year: str
    type_of_leave: str
    date_from: datetime
    date_to: datetime
    days_hours: str
    reasons: str
    proof_url: Optional[str] = None
    status: Literal["pending", "approved", "disapproved"] = "pending"
    remarks: Optional[str] = None
    decided_by: Optional[str] = None
    decided_by_name: Optional[str] = None
    decided_at: Optional[datetime] = None
    allow_resubmit: bool = False


class CriterionEvaluation(BaseModel):
    criterion: str
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None


class Evaluation(BaseModel):
    scholar_id: str
    user_id: str
    scholar_name: str
    scholar_type: ScholarType
    office_name: str
    evaluator_name: str
    evaluator_id: str
    items: List[CriterionEvaluation] = Field(..., min_length=1)
    areas_of_strength: Optional[str] = None
    areas_of_improvement: Optional[str] = None
    recommended_for_next_semester: bool = False
    justification: Optional[str] = None


class ScholarRequest(BaseModel):
    requested_by: str
    total_scholars: int = Field(..., ge=1)
    male_scholars: int = Field(..., ge=0)
    female_scholars: int = Field(..., ge=0)
    scholar_type: Literal["Student Assistant", "Student Marshal"]
    notes: Optional[str] = None
    status: Literal["pending", "approved", "rejected"] = "pending"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None


class Notification(BaseModel):
    user_id: str
    title: str
    message: str
    type: NotificationType = "info"
    is_read: bool = False
    related_application_id: Optional[str] = None
