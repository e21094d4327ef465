"""
Document-level records: the merged multi-page document, display fields and
health recommendations
"""
from typing import ClassVar, List, Optional

from pydantic import Field

from .extraction import (
    AdditionalField,
    EntryList,
    ExtractionModel,
    ImagingStudy,
    LabResult,
    LabTestCost,
    ListEntry,
    Medication,
    MedicationCost,
    OtherCharge,
    PageExtraction,
    PathologyReport,
    Procedure,
    ProcedureCost,
    Text,
)


class VitalSign(ExtractionModel):
    key: str
    value: Text = None


class MergedPatient(ExtractionModel):
    name: Text = None
    date_of_birth: Text = None
    age: Text = None
    gender: Text = None
    mr_number: Text = None
    ip_number: Text = None


class MergedDocumentInfo(ExtractionModel):
    type: Text = None
    report_date: Text = None
    admission_date: Text = None
    discharge_date: Text = None


class MergedHospital(ExtractionModel):
    name: Text = None
    department: Text = None
    doctor: Text = None
    consultant: Text = None
    contact_numbers: List[str] = Field(default_factory=list)


class MergedMedical(ExtractionModel):
    chief_complaint: Text = None
    diagnosis: Text = None
    secondary_diagnoses: List[str] = Field(default_factory=list)
    procedures: List[Procedure] = Field(default_factory=list)
    medications: List[Medication] = Field(default_factory=list)
    lab_results: List[LabResult] = Field(default_factory=list)
    vital_signs: List[VitalSign] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    medical_history: Text = None
    family_history: Text = None


class MergedTreatment(ExtractionModel):
    dietary_advice: List[str] = Field(default_factory=list)
    activity_restrictions: List[str] = Field(default_factory=list)
    follow_up_instructions: List[str] = Field(default_factory=list)
    follow_up_date: Text = None
    special_instructions: List[str] = Field(default_factory=list)


class MergedBilling(ExtractionModel):
    total_amount: Text = None
    consultation_fee: Text = None
    room_charges: Text = None
    procedure_costs: List[ProcedureCost] = Field(default_factory=list)
    medication_costs: List[MedicationCost] = Field(default_factory=list)
    lab_test_costs: List[LabTestCost] = Field(default_factory=list)
    other_charges: List[OtherCharge] = Field(default_factory=list)
    subtotal: Text = None
    discount: Text = None
    tax_amount: Text = None
    insurance_covered: Text = None
    patient_payable: Text = None
    payment_status: Text = None
    payment_method: Text = None
    invoice_number: Text = None
    receipt_number: Text = None


class MergedImaging(ExtractionModel):
    imaging_studies: List[ImagingStudy] = Field(default_factory=list)
    pathology_reports: List[PathologyReport] = Field(default_factory=list)


class MergedDocument(ExtractionModel):
    """Canonical record folded from the ordered page extractions"""

    patient: MergedPatient = Field(default_factory=MergedPatient)
    document: MergedDocumentInfo = Field(default_factory=MergedDocumentInfo)
    hospital: MergedHospital = Field(default_factory=MergedHospital)
    medical: MergedMedical = Field(default_factory=MergedMedical)
    treatment: MergedTreatment = Field(default_factory=MergedTreatment)
    billing: MergedBilling = Field(default_factory=MergedBilling)
    imaging: MergedImaging = Field(default_factory=MergedImaging)
    additional_fields: List[AdditionalField] = Field(default_factory=list)
    summary: str = ""
    raw_pages: List[PageExtraction] = Field(default_factory=list)

    def clinical_summary(self) -> dict:
        """Clinical subset sent to the recommendation prompt"""
        medical = self.medical.model_dump(by_alias=True, mode="json")
        return {
            "diagnosis": medical["diagnosis"],
            "medications": medical["medications"],
            "labResults": medical["labResults"],
            "vitalSigns": medical["vitalSigns"],
            "allergies": medical["allergies"],
            "medicalHistory": medical["medicalHistory"],
            "procedures": medical["procedures"],
            "treatmentPlan": self.treatment.model_dump(by_alias=True, mode="json"),
        }


class ParsedField(ExtractionModel):
    label: str
    value: Text = None


class Recommendation(ListEntry):
    primary_field: ClassVar[str] = "recommendation"

    category: Text = None
    priority: Text = None
    recommendation: Text = None
    reason: Text = None


class HealthWarning(ListEntry):
    primary_field: ClassVar[str] = "warning"

    severity: Text = None
    warning: Text = None
    action: Text = None


class HealthRecommendations(ExtractionModel):
    summary: Text = None
    recommendations: EntryList[Recommendation] = Field(default_factory=list)
    warnings: EntryList[HealthWarning] = Field(default_factory=list)
    next_steps: EntryList[Text] = Field(default_factory=list)


class ProcessedDocument(ExtractionModel):
    """Outcome of the full pipeline for one uploaded document"""

    id: str
    pages_processed: int
    image_urls: List[str] = Field(default_factory=list)
    confidence_score: int
    page_scores: List[int] = Field(default_factory=list)
    health_recommendations: Optional[HealthRecommendations] = None
