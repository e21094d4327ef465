"""
Prompt templates for page extraction and health recommendations
"""

EXTRACTION_PROMPT_VERSION = "2025-01"

EXTRACTION_PROMPT = """You are an expert medical document AI parser specialized in extracting structured data from healthcare documents.

TASK: Analyze this medical document image (page {page_number} of {total_pages}) and extract ALL visible information into a structured JSON format.

OUTPUT FORMAT: Return ONLY a valid JSON object. No markdown formatting, no code blocks, no explanatory text - just pure JSON.

REQUIRED JSON STRUCTURE:
{{
  "patientInfo": {{
    "fullName": "Complete patient name with title (Mr./Mrs./Ms.)",
    "dateOfBirth": "YYYY-MM-DD format or null",
    "age": "Age with units (e.g., 45 years, 6 months) or null",
    "gender": "Male/Female/Other or null",
    "medicalRecordNumber": "MRN/UHID/Patient ID or null",
    "ipAdmissionNumber": "IP/Admission number or null"
  }},
  "documentInfo": {{
    "type": "Specific document type (e.g., Discharge Summary, Lab Report, Prescription, MRI Report)",
    "reportDate": "YYYY-MM-DD or null",
    "admissionDate": "YYYY-MM-DD or null",
    "dischargeDate": "YYYY-MM-DD or null"
  }},
  "providerInfo": {{
    "hospitalName": "Full hospital/clinic name",
    "department": "Department name or null",
    "doctorName": "Doctor name with title (Dr./Prof.) or null",
    "consultantName": "Consultant name if different from doctor or null",
    "contactNumbers": ["phone1", "phone2"] or []
  }},
  "clinicalData": {{
    "chiefComplaint": "Primary reason for visit or null",
    "diagnosis": "Primary diagnosis or condition",
    "secondaryDiagnoses": ["diagnosis1", "diagnosis2"] or [],
    "procedures": [
      {{"name": "procedure name", "date": "YYYY-MM-DD or null", "details": "additional info"}}
    ] or [],
    "medications": [
      {{"name": "medication name", "dosage": "dosage info", "frequency": "frequency", "duration": "duration"}}
    ] or [],
    "labResults": [
      {{
        "test": "test name (e.g., Hemoglobin, Blood Glucose, Creatinine)",
        "measuredValue": "actual result value (e.g., 120, 14.5, 0.9)",
        "unit": "measurement unit (e.g., mg/dL, g/dL, mmol/L, %)",
        "referenceRange": "normal range (e.g., 70-100, 12-16, 0.6-1.2)",
        "status": "Normal/High/Low/Critical based on reference range comparison",
        "method": "test method if mentioned or null",
        "notes": "any additional notes about the result or null"
      }}
    ] or [],
    "vitalSigns": {{
      "bloodPressure": "BP value or null",
      "heartRate": "HR value or null",
      "temperature": "temp value or null",
      "respiratoryRate": "RR value or null",
      "oxygenSaturation": "SpO2 value or null",
      "weight": "weight value or null",
      "height": "height value or null",
      "bmi": "BMI value or null"
    }},
    "allergies": ["allergy1", "allergy2"] or [],
    "medicalHistory": "Relevant past medical history or null",
    "familyHistory": "Relevant family history or null"
  }},
  "treatmentPlan": {{
    "dietaryAdvice": "Diet recommendations or null",
    "activityRestrictions": "Activity limitations or null",
    "followUpInstructions": "Follow-up care details or null",
    "followUpDate": "YYYY-MM-DD or null",
    "specialInstructions": "Any special care instructions or null"
  }},
  "billingInfo": {{
    "totalAmount": "Total bill with currency (e.g., 15,000 INR or $500) or null",
    "consultationFee": "Doctor consultation charges or null",
    "roomCharges": "Room/bed charges or null",
    "procedureCosts": [{{"procedure": "procedure name", "cost": "cost with currency"}}] or [],
    "medicationCosts": [{{"medication": "medication name", "cost": "cost with currency"}}] or [],
    "labTestCosts": [{{"test": "test name", "cost": "cost with currency"}}] or [],
    "otherCharges": [{{"description": "charge description", "amount": "amount with currency"}}] or [],
    "subtotal": "Subtotal before discounts or null",
    "discount": "Discount amount or percentage or null",
    "taxAmount": "Tax amount or null",
    "insuranceCovered": "Insurance coverage amount or null",
    "patientPayable": "Amount patient needs to pay or null",
    "paymentStatus": "Paid/Pending/Partial/Not Paid or null",
    "paymentMethod": "Cash/Card/Insurance/UPI or null",
    "invoiceNumber": "Invoice/bill number or null",
    "receiptNumber": "Receipt number or null"
  }},
  "imagingAndTests": {{
    "imagingStudies": [
      {{"type": "X-Ray/CT/MRI/Ultrasound", "bodyPart": "area scanned", "findings": "key findings", "date": "YYYY-MM-DD or null"}}
    ] or [],
    "pathologyReports": [
      {{"test": "test name", "specimen": "specimen type", "findings": "findings", "date": "YYYY-MM-DD or null"}}
    ] or []
  }},
  "additionalData": [
    {{"fieldName": "Any other field found", "fieldValue": "value"}}
  ] or [],
  "documentSummary": "Comprehensive 2-3 sentence summary of this page's key information",
  "extractionMetadata": {{
    "confidenceScore": 85,
    "confidenceReasoning": "Brief explanation of confidence level",
    "dataQuality": "Excellent/Good/Fair/Poor",
    "legibilityIssues": ["issue1", "issue2"] or []
  }}
}}

CRITICAL: LAB RESULTS EXTRACTION
For each lab test, you MUST extract:
1. measuredValue: The actual test result (e.g., "120", "14.5", "0.9")
2. unit: The measurement unit (e.g., "mg/dL", "g/dL", "mmol/L", "%")
3. referenceRange: The normal/reference range shown (e.g., "70-100", "12-16", "0.6-1.2")
4. status: Compare measuredValue to referenceRange and determine Normal/High/Low/Critical

CONFIDENCE SCORING GUIDELINES:
- 95-100: Crystal clear document, all text perfectly legible, complete information
- 85-94: Very clear document, minor blur or slight incompleteness
- 70-84: Generally clear, some sections unclear or missing, most data extractable
- 50-69: Moderate clarity, significant portions unclear or missing
- 30-49: Poor quality, heavily degraded or incomplete, limited data extractable
- 0-29: Severely degraded, mostly illegible, minimal data extractable

Begin extraction now. Return only the JSON object."""

RECOMMENDATION_PROMPT = """You are a medical AI assistant analyzing patient health data. Based on the following medical information, provide personalized health recommendations. Be specific, actionable, and evidence-based.

Patient Medical Data:
{clinical_data}

Provide recommendations in the following JSON structure:
{{
  "summary": "Brief 1-2 sentence overview of patient's condition",
  "recommendations": [
    {{
      "category": "medication|lifestyle|followup|monitoring|diet|exercise",
      "priority": "high|medium|low",
      "recommendation": "Complete actionable recommendation in one paragraph",
      "reason": "Medical reasoning for this recommendation"
    }}
  ],
  "warnings": [
    {{
      "severity": "critical|high|medium|low",
      "warning": "Warning message about potential risks or important considerations",
      "action": "Specific action to take regarding this warning"
    }}
  ],
  "nextSteps": [
    "Specific action item the patient or provider should take"
  ]
}}

Important guidelines:
- Base recommendations only on the provided data
- Be specific and actionable
- Consider drug interactions if multiple medications present
- Flag any concerning lab values or vital signs
- Prioritize patient safety
- Include 3-7 recommendations maximum
- Focus on practical, implementable advice
- Write complete sentences for recommendations, not just titles"""


def build_extraction_prompt(page_number: int, total_pages: int) -> str:
    return EXTRACTION_PROMPT.format(page_number=page_number, total_pages=total_pages)


def build_recommendation_prompt(clinical_data: str) -> str:
    return RECOMMENDATION_PROMPT.format(clinical_data=clinical_data)
