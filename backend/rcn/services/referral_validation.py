"""
Referral payload parsing and submission validation.

Request bodies are parsed into pydantic models at the boundary, so services
only ever handle complete, typed values. Presence rules that depend on the
draft flag (send requires more than save) live in ``validate_for_send``.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
import pydantic

from rcn.domain.referral import (
    AdditionalPatientInfo,
    Documents,
    InsuranceEntry,
    Patient,
    PrimaryCare,
    Referral,
    SenderInfo,
    utcnow,
)
from rcn.errors import ValidationError


PRIMARY_INSURANCE_REQUIRED = "Primary insurance: Payer, Policy #, and Plan/Group are required."


def _strip(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


class _StrippedModel(BaseModel):
    """Every string field defaults to "" and is stripped."""

    @field_validator("*", mode="before")
    @classmethod
    def _strip_strings(cls, v):
        return _strip(v)


class SenderIn(_StrippedModel):
    sender_name: str = ""
    facility_name: str = ""
    facility_address: str = ""
    sender_email: str = ""
    sender_phone_number: str = ""
    sender_fax_number: str = ""


class PatientIn(_StrippedModel):
    first_name: str = ""
    last_name: str = ""
    dob: str = ""
    gender: str = ""
    address_of_care: str = ""


class InsuranceIn(_StrippedModel):
    payer: str = ""
    policy: str = ""
    plan_group: str = ""
    document: str = ""


class AdditionalPatientIn(_StrippedModel):
    phone_number: str = ""
    dial_code: str = "+1"
    primary_language: str = ""
    power_of_attorney: str = ""
    social_security_number: str = ""
    other_information: str = ""


class PrimaryCareIn(_StrippedModel):
    name: str = ""
    address: str = ""
    phone_number: str = ""
    dial_code: str = "+1"
    fax: str = ""
    email: str = ""
    npi: str = ""


class DocumentsIn(BaseModel):
    face_sheet: str = ""
    medication_list: str = ""
    discharge_summary: str = ""
    signed_order: str = ""
    history_or_physical: str = ""
    progress_notes: str = ""
    wound_photos: List[str] = Field(default_factory=list)
    other_documents: List[str] = Field(default_factory=list)

    @field_validator("wound_photos", "other_documents", mode="before")
    @classmethod
    def _url_list(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return [v]
        return [u for u in v if u]

    @field_validator(
        "face_sheet",
        "medication_list",
        "discharge_summary",
        "signed_order",
        "history_or_physical",
        "progress_notes",
        mode="before",
    )
    @classmethod
    def _url(cls, v):
        return _strip(v)


class ReferralPayload(BaseModel):
    """Create / update body for a referral."""

    sender: SenderIn = Field(default_factory=SenderIn)
    patient: PatientIn = Field(default_factory=PatientIn)
    speciality_ids: List[str] = Field(default_factory=list)
    additional_speciality: str = ""
    additional_notes: str = ""
    insurance: List[InsuranceIn] = Field(default_factory=list)
    additional_patient: AdditionalPatientIn = Field(default_factory=AdditionalPatientIn)
    documents: DocumentsIn = Field(default_factory=DocumentsIn)
    primary_care: PrimaryCareIn = Field(default_factory=PrimaryCareIn)
    department_ids: List[str] = Field(default_factory=list)
    is_draft: bool = True
    payment_type: Literal["free", "credit", "payment"] = "free"
    payment_method_id: Optional[str] = None

    @field_validator("additional_speciality", "additional_notes", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip(v)

    @field_validator("speciality_ids", "department_ids", mode="before")
    @classmethod
    def _dedupe(cls, v):
        seen = []
        for item in v or []:
            item = str(item).strip()
            if item and item not in seen:
                seen.append(item)
        return seen

    @model_validator(mode="after")
    def _insurance_entries(self):
        # First entry is primary; blank later entries are dropped
        entries = list(self.insurance)
        if not entries:
            return self
        primary, rest = entries[0], [e for e in entries[1:] if not _insurance_blank(e)]
        if not _insurance_blank(primary) and not _insurance_complete(primary):
            raise ValueError(PRIMARY_INSURANCE_REQUIRED)
        for position, entry in enumerate(rest, start=2):
            if not _insurance_complete(entry):
                raise ValueError(f"Insurance {position}: Payer, Policy #, and Plan/Group are required.")
        self.insurance = ([] if _insurance_blank(primary) and not rest else [primary]) + rest
        return self


def _insurance_blank(entry: InsuranceIn) -> bool:
    return not any((entry.payer, entry.policy, entry.plan_group, entry.document))


def _insurance_complete(entry: InsuranceIn) -> bool:
    return bool(entry.payer and entry.policy and entry.plan_group)


def parse_model(model_cls, data: Optional[Dict[str, Any]]):
    """Validate ``data`` into ``model_cls``; failures become ValidationError."""
    try:
        return model_cls.model_validate(data or {})
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        cause = (first.get("ctx") or {}).get("error")
        message = str(cause) if cause else first.get("msg", "Invalid value.")
        if field and not cause:
            message = f"{field}: {message}"
        raise ValidationError(message, field=field or None) from e


def parse_referral_payload(data: Optional[Dict[str, Any]]) -> ReferralPayload:
    return parse_model(ReferralPayload, data)


def apply_payload(referral: Referral, payload: ReferralPayload) -> Referral:
    """Copy payload content onto ``referral`` (draft content only)."""
    referral.sender = SenderInfo.from_dict(payload.sender.model_dump())
    referral.patient = Patient.from_dict(payload.patient.model_dump())
    referral.speciality_ids = list(payload.speciality_ids)
    referral.additional_speciality = payload.additional_speciality
    referral.additional_notes = payload.additional_notes
    referral.insurance = [InsuranceEntry.from_dict(e.model_dump()) for e in payload.insurance]
    referral.additional_patient = AdditionalPatientInfo.from_dict(payload.additional_patient.model_dump())
    referral.documents = Documents.from_dict(payload.documents.model_dump())
    referral.primary_care = PrimaryCare.from_dict(payload.primary_care.model_dump())
    referral.updated_at = utcnow()
    return referral


def build_referral(
    payload: ReferralPayload,
    organization_id: str,
    user_id: Optional[str] = None,
) -> Referral:
    referral = Referral(sender_organization_id=organization_id, sender_user_id=user_id)
    return apply_payload(referral, payload)


def validate_for_send(referral: Referral, department_ids: List[str], directory) -> None:
    """
    Raise ValidationError unless ``referral`` may be dispatched to
    ``department_ids``. Runs before any write.
    """
    if not referral.patient.first_name:
        raise ValidationError("Patient first name is required.", field="patient.first_name")
    if not referral.patient.last_name:
        raise ValidationError("Patient last name is required.", field="patient.last_name")

    primary = referral.primary_insurance
    if primary is None or not primary.is_complete():
        raise ValidationError(PRIMARY_INSURANCE_REQUIRED, field="insurance.0")

    if not department_ids:
        raise ValidationError("Select at least one receiving department.", field="department_ids")

    for department_id in department_ids:
        department = directory.find_department(department_id)
        if department is None:
            raise ValidationError(f"Unknown department: {department_id}.", field="department_ids")
        if not department.is_active:
            raise ValidationError(f"{department.name} is not accepting referrals.", field="department_ids")
