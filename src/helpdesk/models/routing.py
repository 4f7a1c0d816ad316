"""Routing policy models."""

from enum import Enum
from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, field_validator

from helpdesk.models.actor import Role


class Category(str, Enum):
    """Fixed ticket category catalog."""

    LEAVE_ISSUE = "Leave Issue"
    ATTENDANCE_ISSUE = "Attendance Issue"
    REGULARIZATION_PROBLEM = "Regularization Problem"
    HOLIDAY_CALENDAR_QUERY = "Holiday Calendar Query"
    WFH_REMOTE_WORK = "WFH / Remote Work Requests"
    PAYROLL_SALARY = "Payroll / Salary Issue"
    PAYSLIP_NOT_AVAILABLE = "Payslip Not Available"
    REIMBURSEMENT = "Reimbursement Issue"
    TAX_TDS_FORM16 = "Tax / TDS / Form-16"
    LEAVE_POLICY_CLARIFICATION = "Leave Policy Clarification"
    PERFORMANCE_REVIEW = "Performance Review Concern"
    KPI_GOALS_SETUP = "KPI / Goals Setup Issue"
    PROBATION_CONFIRMATION = "Probation / Confirmation"
    TRAINING_LMS_ACCESS = "Training / LMS Access Issue"
    CERTIFICATION = "Certification Issue"
    OFFER_LETTER_JOINING = "Offer Letter / Joining Issue"
    REFERRAL_INTERVIEW_FEEDBACK = "Referral / Interview Feedback"
    RESIGNATION_PROCESS = "Resignation Process Query"
    FINAL_SETTLEMENT_DELAY = "Final Settlement Delay"
    EXPERIENCE_LETTER = "Experience Letter Request"
    HRMS_LOGIN = "HRMS Login Issue"
    SYSTEM_BUG = "System Bug / App Crash"
    DOCUMENT_UPLOAD_FAILED = "Document Upload Failed"
    OFFICE_ACCESS_ID_CARD = "Office Access / ID Card Lost"
    GENERAL_HR_QUERY = "General HR Query"
    HARASSMENT_GRIEVANCE = "Harassment / Grievance"
    ASSET_REQUEST = "Asset Request / Laptop"
    FEEDBACK_SUGGESTION = "Feedback / Suggestion to HR"
    OTHERS = "Others"


class RoutingEntry(BaseModel):
    """Eligible HR roles for one category."""

    model_config = ConfigDict(frozen=True)

    eligible_roles: FrozenSet[Role]
    confidential: bool = False

    @field_validator("eligible_roles")
    @classmethod
    def validate_roles(cls, value: FrozenSet[Role]) -> FrozenSet[Role]:
        if not value:
            raise ValueError("a routing entry needs at least one eligible role")
        return value
