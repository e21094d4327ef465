"""
Pydantic models for a single page extraction returned by the vision model

The model is asked for camelCase JSON; every leaf is optional and validation is
lenient so that a slightly off-schema answer still yields a usable record.
"""
import json
import math
from typing import Annotated, Any, ClassVar, List, Optional, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "; ".join(str(item) for item in value if item not in (None, ""))
    return json.dumps(value, ensure_ascii=False)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip().rstrip("%"))
        else:
            return None
    except (ValueError, OverflowError):
        return None
    # NaN and infinities are not usable scores
    return number if math.isfinite(number) else None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return [value]


def _as_block(value: Any) -> Any:
    return {} if value is None else value


Text = Annotated[Optional[str], BeforeValidator(_as_text)]
Number = Annotated[Optional[float], BeforeValidator(_as_number)]
EntryList = Annotated[List[T], BeforeValidator(_as_list)]
Block = Annotated[T, BeforeValidator(_as_block)]


class ExtractionModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class ListEntry(ExtractionModel):
    """Object inside a list field; a bare value becomes its primary field"""

    primary_field: ClassVar[str] = "name"

    @model_validator(mode="before")
    @classmethod
    def _from_bare_value(cls, data: Any) -> Any:
        if isinstance(data, (str, int, float)) and not isinstance(data, bool):
            return {cls.primary_field: str(data)}
        return data


class Procedure(ListEntry):
    name: Text = None
    date: Text = None
    details: Text = None


class Medication(ListEntry):
    name: Text = None
    dosage: Text = None
    frequency: Text = None
    duration: Text = None


class LabResult(ListEntry):
    primary_field: ClassVar[str] = "test"

    test: Text = None
    measured_value: Text = None
    unit: Text = None
    reference_range: Text = None
    status: Text = None
    method: Text = None
    notes: Text = None


class ProcedureCost(ListEntry):
    primary_field: ClassVar[str] = "procedure"

    procedure: Text = None
    cost: Text = None


class MedicationCost(ListEntry):
    primary_field: ClassVar[str] = "medication"

    medication: Text = None
    cost: Text = None


class LabTestCost(ListEntry):
    primary_field: ClassVar[str] = "test"

    test: Text = None
    cost: Text = None


class OtherCharge(ListEntry):
    primary_field: ClassVar[str] = "description"

    description: Text = None
    amount: Text = None


class ImagingStudy(ListEntry):
    primary_field: ClassVar[str] = "type"

    type: Text = None
    body_part: Text = None
    findings: Text = None
    date: Text = None


class PathologyReport(ListEntry):
    primary_field: ClassVar[str] = "test"

    test: Text = None
    specimen: Text = None
    findings: Text = None
    date: Text = None


class AdditionalField(ListEntry):
    primary_field: ClassVar[str] = "field_value"

    field_name: Text = None
    field_value: Text = None


class PatientInfo(ExtractionModel):
    full_name: Text = None
    date_of_birth: Text = None
    age: Text = None
    gender: Text = None
    medical_record_number: Text = None
    ip_admission_number: Text = None


class DocumentInfo(ExtractionModel):
    type: Text = None
    report_date: Text = None
    admission_date: Text = None
    discharge_date: Text = None


class ProviderInfo(ExtractionModel):
    hospital_name: Text = None
    department: Text = None
    doctor_name: Text = None
    consultant_name: Text = None
    contact_numbers: EntryList[Text] = Field(default_factory=list)


class VitalSigns(ExtractionModel):
    """Eight common vitals; any other reading the model reports is kept as an extra"""

    model_config = ConfigDict(extra="allow")

    blood_pressure: Text = None
    heart_rate: Text = None
    temperature: Text = None
    respiratory_rate: Text = None
    oxygen_saturation: Text = None
    weight: Text = None
    height: Text = None
    bmi: Text = None


class ClinicalData(ExtractionModel):
    chief_complaint: Text = None
    diagnosis: Text = None
    secondary_diagnoses: EntryList[Text] = Field(default_factory=list)
    procedures: EntryList[Procedure] = Field(default_factory=list)
    medications: EntryList[Medication] = Field(default_factory=list)
    lab_results: EntryList[LabResult] = Field(default_factory=list)
    vital_signs: Block[VitalSigns] = Field(default_factory=VitalSigns)
    allergies: EntryList[Text] = Field(default_factory=list)
    medical_history: Text = None
    family_history: Text = None


class TreatmentPlan(ExtractionModel):
    dietary_advice: Text = None
    activity_restrictions: Text = None
    follow_up_instructions: Text = None
    follow_up_date: Text = None
    special_instructions: Text = None


class BillingInfo(ExtractionModel):
    total_amount: Text = None
    consultation_fee: Text = None
    room_charges: Text = None
    procedure_costs: EntryList[ProcedureCost] = Field(default_factory=list)
    medication_costs: EntryList[MedicationCost] = Field(default_factory=list)
    lab_test_costs: EntryList[LabTestCost] = Field(default_factory=list)
    other_charges: EntryList[OtherCharge] = Field(default_factory=list)
    subtotal: Text = None
    discount: Text = None
    tax_amount: Text = None
    insurance_covered: Text = None
    patient_payable: Text = None
    payment_status: Text = None
    payment_method: Text = None
    invoice_number: Text = None
    receipt_number: Text = None


class ImagingAndTests(ExtractionModel):
    imaging_studies: EntryList[ImagingStudy] = Field(default_factory=list)
    pathology_reports: EntryList[PathologyReport] = Field(default_factory=list)


class ExtractionMetadata(ExtractionModel):
    confidence_score: Number = None
    confidence_reasoning: Text = None
    data_quality: Text = None
    legibility_issues: EntryList[Text] = Field(default_factory=list)


class PageExtraction(ExtractionModel):
    """Structured output for one document page"""

    patient_info: Block[PatientInfo] = Field(default_factory=PatientInfo)
    document_info: Block[DocumentInfo] = Field(default_factory=DocumentInfo)
    provider_info: Block[ProviderInfo] = Field(default_factory=ProviderInfo)
    clinical_data: Block[ClinicalData] = Field(default_factory=ClinicalData)
    treatment_plan: Block[TreatmentPlan] = Field(default_factory=TreatmentPlan)
    billing_info: Block[BillingInfo] = Field(default_factory=BillingInfo)
    imaging_and_tests: Block[ImagingAndTests] = Field(default_factory=ImagingAndTests)
    additional_data: EntryList[AdditionalField] = Field(default_factory=list)
    document_summary: Text = None
    extraction_metadata: Block[ExtractionMetadata] = Field(default_factory=ExtractionMetadata)

    @classmethod
    def failed_stub(cls, summary: str) -> "PageExtraction":
        """All-null page used when the model call or its output is unusable"""
        return cls(
            document_summary=summary,
            extraction_metadata=ExtractionMetadata(confidence_score=0),
        )


class PageResult(BaseModel):
    """A page extraction plus whether the model call produced it"""

    model_config = ConfigDict(frozen=True)

    page_number: int
    extraction: PageExtraction
    succeeded: bool
