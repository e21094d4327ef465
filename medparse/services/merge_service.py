"""
Multi-page merge: fold ordered page extractions into one MergedDocument

Each merged field is described by one row of MERGE_RULES. Scalars take the
first non-empty value in page order, list fields are unioned with duplicates
removed by their canonical JSON form, vital signs are flattened to key/value
pairs before the union, and additional data is concatenated as-is.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, List, Sequence, Tuple

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from ..models.document import MergedDocument, ParsedField, VitalSign
from ..models.extraction import PageExtraction, VitalSigns

logger = logging.getLogger(__name__)


class RuleKind(str, Enum):
    FIRST = "first"
    UNION = "union"
    VITALS = "vitals"
    CONCAT = "concat"


@dataclass(frozen=True)
class MergeRule:
    target: Tuple[str, ...]
    source: Tuple[str, ...]
    kind: RuleKind = RuleKind.FIRST
    default: Any = None


FIRST, UNION, VITALS, CONCAT = RuleKind.FIRST, RuleKind.UNION, RuleKind.VITALS, RuleKind.CONCAT

MERGE_RULES: Tuple[MergeRule, ...] = (
    # patient
    MergeRule(("patient", "name"), ("patient_info", "full_name"), default="Unknown"),
    MergeRule(("patient", "date_of_birth"), ("patient_info", "date_of_birth")),
    MergeRule(("patient", "age"), ("patient_info", "age")),
    MergeRule(("patient", "gender"), ("patient_info", "gender")),
    MergeRule(("patient", "mr_number"), ("patient_info", "medical_record_number")),
    MergeRule(("patient", "ip_number"), ("patient_info", "ip_admission_number")),
    # document
    MergeRule(("document", "type"), ("document_info", "type"), default="Medical Document"),
    MergeRule(("document", "report_date"), ("document_info", "report_date")),
    MergeRule(("document", "admission_date"), ("document_info", "admission_date")),
    MergeRule(("document", "discharge_date"), ("document_info", "discharge_date")),
    # hospital
    MergeRule(("hospital", "name"), ("provider_info", "hospital_name")),
    MergeRule(("hospital", "department"), ("provider_info", "department")),
    MergeRule(("hospital", "doctor"), ("provider_info", "doctor_name")),
    MergeRule(("hospital", "consultant"), ("provider_info", "consultant_name")),
    MergeRule(("hospital", "contact_numbers"), ("provider_info", "contact_numbers"), UNION),
    # medical
    MergeRule(("medical", "chief_complaint"), ("clinical_data", "chief_complaint")),
    MergeRule(("medical", "diagnosis"), ("clinical_data", "diagnosis")),
    MergeRule(("medical", "secondary_diagnoses"), ("clinical_data", "secondary_diagnoses"), UNION),
    MergeRule(("medical", "procedures"), ("clinical_data", "procedures"), UNION),
    MergeRule(("medical", "medications"), ("clinical_data", "medications"), UNION),
    MergeRule(("medical", "lab_results"), ("clinical_data", "lab_results"), UNION),
    MergeRule(("medical", "vital_signs"), ("clinical_data", "vital_signs"), VITALS),
    MergeRule(("medical", "allergies"), ("clinical_data", "allergies"), UNION),
    MergeRule(("medical", "medical_history"), ("clinical_data", "medical_history")),
    MergeRule(("medical", "family_history"), ("clinical_data", "family_history")),
    # treatment: free-text advice is gathered from every page
    MergeRule(("treatment", "dietary_advice"), ("treatment_plan", "dietary_advice"), UNION),
    MergeRule(("treatment", "activity_restrictions"), ("treatment_plan", "activity_restrictions"), UNION),
    MergeRule(("treatment", "follow_up_instructions"), ("treatment_plan", "follow_up_instructions"), UNION),
    MergeRule(("treatment", "follow_up_date"), ("treatment_plan", "follow_up_date")),
    MergeRule(("treatment", "special_instructions"), ("treatment_plan", "special_instructions"), UNION),
    # billing
    MergeRule(("billing", "total_amount"), ("billing_info", "total_amount")),
    MergeRule(("billing", "consultation_fee"), ("billing_info", "consultation_fee")),
    MergeRule(("billing", "room_charges"), ("billing_info", "room_charges")),
    MergeRule(("billing", "procedure_costs"), ("billing_info", "procedure_costs"), UNION),
    MergeRule(("billing", "medication_costs"), ("billing_info", "medication_costs"), UNION),
    MergeRule(("billing", "lab_test_costs"), ("billing_info", "lab_test_costs"), UNION),
    MergeRule(("billing", "other_charges"), ("billing_info", "other_charges"), UNION),
    MergeRule(("billing", "subtotal"), ("billing_info", "subtotal")),
    MergeRule(("billing", "discount"), ("billing_info", "discount")),
    MergeRule(("billing", "tax_amount"), ("billing_info", "tax_amount")),
    MergeRule(("billing", "insurance_covered"), ("billing_info", "insurance_covered")),
    MergeRule(("billing", "patient_payable"), ("billing_info", "patient_payable")),
    MergeRule(("billing", "payment_status"), ("billing_info", "payment_status")),
    MergeRule(("billing", "payment_method"), ("billing_info", "payment_method")),
    MergeRule(("billing", "invoice_number"), ("billing_info", "invoice_number")),
    MergeRule(("billing", "receipt_number"), ("billing_info", "receipt_number")),
    # imaging
    MergeRule(("imaging", "imaging_studies"), ("imaging_and_tests", "imaging_studies"), UNION),
    MergeRule(("imaging", "pathology_reports"), ("imaging_and_tests", "pathology_reports"), UNION),
    # free-form
    MergeRule(("additional_fields",), ("additional_data",), CONCAT),
)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, BaseModel):
        return all(is_empty(getattr(value, name)) for name in type(value).model_fields)
    return False


def canonical_key(entry: Any) -> str:
    """Serialized form used to decide whether two list entries are equal"""
    if isinstance(entry, BaseModel):
        entry = entry.model_dump(mode="json")
    return json.dumps(entry, sort_keys=True, ensure_ascii=False, default=str)


def _resolve(obj: Any, path: Sequence[str]) -> Any:
    for name in path:
        obj = getattr(obj, name)
    return obj


def _entries(value: Any) -> list:
    if is_empty(value):
        return []
    if isinstance(value, (list, tuple)):
        return [entry for entry in value if not is_empty(entry)]
    return [value]


def _vital_entries(vitals: VitalSigns) -> List[VitalSign]:
    readings = [(to_camel(name), getattr(vitals, name)) for name in VitalSigns.model_fields]
    readings.extend((vitals.model_extra or {}).items())
    return [
        VitalSign(key=key, value=value)
        for key, value in readings
        if not is_empty(value)
    ]


def _first(values: Iterable[Any], default: Any) -> Any:
    for value in values:
        if not is_empty(value):
            return value
    return default


def _union(values: Iterable[Any]) -> list:
    seen = set()
    merged = []
    for value in values:
        for entry in _entries(value):
            key = canonical_key(entry)
            if key in seen:
                continue
            seen.add(key)
            merged.append(entry)
    return merged


def _concat(values: Iterable[Any]) -> list:
    return [entry for value in values for entry in _entries(value)]


def _apply_rule(rule: MergeRule, pages: Sequence[PageExtraction]) -> Any:
    values = [_resolve(page, rule.source) for page in pages]
    if rule.kind is RuleKind.FIRST:
        return _first(values, rule.default)
    if rule.kind is RuleKind.UNION:
        return _union(values)
    if rule.kind is RuleKind.VITALS:
        return _union(_vital_entries(vitals) for vitals in values)
    return _concat(values)


def _assign(tree: dict, path: Sequence[str], value: Any) -> None:
    for name in path[:-1]:
        tree = tree.setdefault(name, {})
    tree[path[-1]] = value


def build_summary(pages: Sequence[PageExtraction]) -> str:
    return "\n\n".join(
        f"Page {number}: {page.document_summary}"
        for number, page in enumerate(pages, start=1)
        if not is_empty(page.document_summary)
    )


def merge_pages(pages: Sequence[PageExtraction], rules: Sequence[MergeRule] = MERGE_RULES) -> MergedDocument:
    """Fold page extractions (document order) into one MergedDocument"""
    pages = list(pages)
    tree: dict = {}
    for rule in rules:
        _assign(tree, rule.target, _apply_rule(rule, pages))
    tree["summary"] = build_summary(pages)
    tree["raw_pages"] = pages
    logger.info(f"Merged {len(pages)} page extraction(s) into one document")
    return MergedDocument.model_validate(tree)


# Display projection

def _or(value: Any, placeholder: str) -> str:
    return placeholder if is_empty(value) else value


def _join(entries: Sequence[Any], render: Callable[[Any], str], placeholder: str, sep: str = "; ") -> str:
    rendered = [render(entry) for entry in entries]
    return sep.join(text for text in rendered if text) or placeholder


def _labelled(name: Any, detail: Any) -> str:
    if is_empty(detail):
        return name or ""
    return f"{name or ''} ({detail})".strip()


def _pair(name: Any, value: Any) -> str:
    if is_empty(value):
        return name or ""
    return f"{name or ''}: {value}"


def _lab_line(result) -> str:
    line = _pair(result.test, result.measured_value)
    return f"{line} ({result.unit})" if result.unit else line


def project_fields(merged: MergedDocument) -> List[ParsedField]:
    """Flat label/value pairs for display; reads the merged document only"""
    patient, document, hospital = merged.patient, merged.document, merged.hospital
    medical, treatment, billing, imaging = merged.medical, merged.treatment, merged.billing, merged.imaging
    na, ns, none = "Not provided", "Not specified", "None listed"

    rows = [
        ("Patient Name", _or(patient.name, "Unknown")),
        ("Document Type", _or(document.type, "Medical Document")),
        ("Hospital", _or(hospital.name, "Unknown")),
        ("Department", _or(hospital.department, ns)),
        ("Doctor/Consultant", _or(hospital.doctor, ns)),
        ("Report Date", _or(document.report_date, na)),
        ("MR Number", _or(patient.mr_number, na)),
        ("IP Number", _or(patient.ip_number, na)),
        ("Date of Birth", _or(patient.date_of_birth, na)),
        ("Age", _or(patient.age, na)),
        ("Gender", _or(patient.gender, ns)),
        ("Admission Date", _or(document.admission_date, na)),
        ("Discharge Date", _or(document.discharge_date, na)),
        ("Chief Complaint", _or(medical.chief_complaint, na)),
        ("Diagnosis", _or(medical.diagnosis, na)),
        ("Secondary Diagnoses", _join(medical.secondary_diagnoses, str, none)),
        ("Procedures", _join(medical.procedures, lambda p: _labelled(p.name, p.date), none)),
        ("Medications", _join(medical.medications, lambda m: _labelled(m.name, m.dosage), none)),
        ("Lab Results", _join(medical.lab_results, _lab_line, none)),
        ("Vital Signs", _join(medical.vital_signs, lambda v: _pair(v.key, v.value), none)),
        ("Allergies", _join(medical.allergies, str, none, sep=", ")),
        ("Medical History", _or(medical.medical_history, na)),
        ("Family History", _or(medical.family_history, na)),
        ("Dietary Advice", _join(treatment.dietary_advice, str, na)),
        ("Activity Restrictions", _join(treatment.activity_restrictions, str, na)),
        ("Follow-up Instructions", _join(treatment.follow_up_instructions, str, na)),
        ("Follow-up Date", _or(treatment.follow_up_date, na)),
        ("Special Instructions", _join(treatment.special_instructions, str, na)),
        ("Total Bill Amount", _or(billing.total_amount, na)),
        ("Consultation Fee", _or(billing.consultation_fee, na)),
        ("Room Charges", _or(billing.room_charges, na)),
        ("Procedure Costs", _join(billing.procedure_costs, lambda c: _pair(c.procedure, c.cost), na)),
        ("Medication Costs", _join(billing.medication_costs, lambda c: _pair(c.medication, c.cost), na)),
        ("Lab Test Costs", _join(billing.lab_test_costs, lambda c: _pair(c.test, c.cost), na)),
        ("Other Charges", _join(billing.other_charges, lambda c: _pair(c.description, c.amount), na)),
        ("Subtotal", _or(billing.subtotal, na)),
        ("Discount", _or(billing.discount, na)),
        ("Tax Amount", _or(billing.tax_amount, na)),
        ("Insurance Covered", _or(billing.insurance_covered, na)),
        ("Patient Payable", _or(billing.patient_payable, na)),
        ("Payment Status", _or(billing.payment_status, na)),
        ("Payment Method", _or(billing.payment_method, na)),
        ("Invoice Number", _or(billing.invoice_number, na)),
        ("Receipt Number", _or(billing.receipt_number, na)),
        ("Imaging Studies", _join(imaging.imaging_studies, lambda s: _labelled(s.type, s.body_part), none)),
        ("Pathology Reports", _join(imaging.pathology_reports, lambda r: _labelled(r.test, r.specimen), none)),
    ]
    fields = [ParsedField(label=label, value=value) for label, value in rows]
    fields.extend(
        ParsedField(label=extra.field_name or "Additional Field", value=extra.field_value)
        for extra in merged.additional_fields
    )
    return fields
