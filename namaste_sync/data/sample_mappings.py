# Built-in sample corpus used to seed an empty store.
# At least one mapping per NAMASTE category; extend freely.

# (namaste_code, namaste_term, chapter_name, icd11_tm2_code, icd11_tm2_description, icd11_biomedicine_code, confidence)
SAMPLE_MAPPINGS = {
    "Ayurveda": [
        ("AYU-001", "Kasa (Cough)", "Respiratory System Disorders", "XF78172", "Traditional cough disorder", "BB498", 0.95),
        ("AYU-002", "Amlapitta (Hyperacidity)", "Digestive System Disorders", "XB20847", "Traditional digestive disorder", "BB769", 0.92),
        ("AYU-003", "Jvara (Fever)", "Infectious Diseases", "XA51203", "Traditional fever disorder", "MG26", 0.90),
        ("AYU-004", "Madhumeha (Diabetes)", "Endocrine and Metabolic Disorders", "XC33410", "Traditional urinary sweetness disorder", "5A11", 0.87),
    ],
    "Siddha": [
        ("SID-001", "Vayu Gunmam (Joint Pain)", "Musculoskeletal Disorders", "XF89234", "Traditional joint disorder", "BD234", 0.88),
        ("SID-002", "Kirani (Diarrhea)", "Digestive System Disorders", "XB41122", "Traditional loose stool disorder", "ME05", 0.84),
    ],
    "Unani": [
        ("UNA-001", "Nazla (Common Cold)", "Respiratory System Disorders", "XF67892", "Traditional cold disorder", "BB123", 0.90),
        ("UNA-002", "Su-e-Hazm (Dyspepsia)", "Digestive System Disorders", "XB77310", "Traditional indigestion disorder", "DD90", 0.86),
    ],
}
